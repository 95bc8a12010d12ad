class Greeter:
    def __init__(self, name):
        self.name = name

    def greet(self, punctuation: str = "!") -> str:
        return self._format() + punctuation

    @staticmethod
    def helper(x):
        return x

    def _format(self):
        return "Hello " + self.name


def main():
    print(Greeter("x").greet())
