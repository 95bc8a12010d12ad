"""Typed view over tree-sitter syntax trees.

Grammar node types are mapped onto a closed set of :class:`NodeKind` values
by a per-language :class:`Dialect`. Walkers subclass :class:`SyntaxVisitor`,
which declares one abstract handler per kind, so a visitor that forgets a
kind cannot be instantiated.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .models import Parameter


class NodeKind(Enum):
    CLASS = "class"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    FUNCTION = "function"
    CALL = "call"
    OTHER = "other"


CALLABLE_NODE_KINDS = (NodeKind.METHOD, NodeKind.CONSTRUCTOR, NodeKind.FUNCTION)


@dataclass(frozen=True)
class Modifiers:
    visibility: str
    is_static: bool = False


def node_text(node: Any) -> str:
    if node is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def _field_text(node: Any, field_name: str) -> str:
    return node_text(node.child_by_field_name(field_name)).strip()


def _strip_annotation(text: str) -> str:
    """``": string"`` -> ``"string"`` (TypeScript type annotations)."""
    return text.lstrip(":").strip()


# ===================================================================
# Dialects
# ===================================================================

class Dialect(ABC):
    """Language-specific knowledge needed to read declarations structurally."""

    language: str = ""
    default_visibility: str = "public"
    node_kinds: Dict[str, NodeKind] = {}

    def classify(self, node: Any) -> NodeKind:
        kind = self.node_kinds.get(node.type, NodeKind.OTHER)
        if kind is NodeKind.OTHER:
            return kind
        return self.refine(node, kind)

    def refine(self, node: Any, kind: NodeKind) -> NodeKind:
        """Adjust a type-based classification using the node's surroundings."""
        return kind

    def name(self, node: Any) -> Optional[str]:
        text = _field_text(node, "name")
        return text or None

    @abstractmethod
    def parameters(self, node: Any) -> List[Parameter]:
        ...

    def return_type(self, node: Any) -> Optional[str]:
        return None

    def modifiers(self, node: Any) -> Modifiers:
        return Modifiers(self.default_visibility)

    @abstractmethod
    def callee(self, node: Any) -> Optional[str]:
        """Name of the function or method invoked by a ``CALL`` node."""
        ...


class JavaDialect(Dialect):
    language = "java"
    default_visibility = "package"
    node_kinds = {
        "class_declaration": NodeKind.CLASS,
        "interface_declaration": NodeKind.CLASS,
        "enum_declaration": NodeKind.CLASS,
        "record_declaration": NodeKind.CLASS,
        "method_declaration": NodeKind.METHOD,
        "constructor_declaration": NodeKind.CONSTRUCTOR,
        "compact_constructor_declaration": NodeKind.CONSTRUCTOR,
        "method_invocation": NodeKind.CALL,
    }

    def return_type(self, node: Any) -> Optional[str]:
        if node.type != "method_declaration":
            return None
        return _field_text(node, "type") or None

    def parameters(self, node: Any) -> List[Parameter]:
        params_node = node.child_by_field_name("parameters")
        if params_node is None:
            return []
        params: List[Parameter] = []
        for child in params_node.named_children:
            if child.type == "formal_parameter":
                type_text = _field_text(child, "type") + _field_text(child, "dimensions")
                params.append(Parameter(name=_field_text(child, "name"), type=type_text))
            elif child.type == "spread_parameter":
                type_text = ""
                name = ""
                for part in child.named_children:
                    if part.type == "variable_declarator":
                        name = _field_text(part, "name")
                    elif part.type != "modifiers" and not type_text:
                        type_text = node_text(part).strip()
                params.append(Parameter(name=name, type=f"{type_text}..."))
        return params

    def modifiers(self, node: Any) -> Modifiers:
        visibility: Optional[str] = None
        is_static = False
        for child in node.children:
            if child.type != "modifiers":
                continue
            for token in child.children:
                if token.type in ("public", "private", "protected"):
                    visibility = token.type
                elif token.type == "static":
                    is_static = True
        if visibility is None:
            visibility = "public" if self._inside_interface(node) else self.default_visibility
        return Modifiers(visibility, is_static)

    @staticmethod
    def _inside_interface(node: Any) -> bool:
        body = node.parent
        return (
            body is not None
            and body.parent is not None
            and body.parent.type == "interface_declaration"
        )

    def callee(self, node: Any) -> Optional[str]:
        return _field_text(node, "name") or None


class PythonDialect(Dialect):
    language = "python"
    node_kinds = {
        "class_definition": NodeKind.CLASS,
        "function_definition": NodeKind.FUNCTION,
        "call": NodeKind.CALL,
    }

    def refine(self, node: Any, kind: NodeKind) -> NodeKind:
        if kind is not NodeKind.FUNCTION:
            return kind
        parent = node.parent
        while parent is not None and parent.type not in ("class_definition", "function_definition"):
            parent = parent.parent
        if parent is None or parent.type != "class_definition":
            return NodeKind.FUNCTION
        if self.name(node) == "__init__":
            return NodeKind.CONSTRUCTOR
        return NodeKind.METHOD

    def return_type(self, node: Any) -> Optional[str]:
        return _field_text(node, "return_type") or None

    def parameters(self, node: Any) -> List[Parameter]:
        params_node = node.child_by_field_name("parameters")
        if params_node is None:
            return []
        params: List[Parameter] = []
        for index, child in enumerate(params_node.named_children):
            if child.type == "identifier":
                param = Parameter(name=node_text(child))
            elif child.type == "typed_parameter":
                name_node = child.named_children[0] if child.named_children else None
                param = Parameter(name=node_text(name_node), type=_field_text(child, "type"))
            elif child.type == "default_parameter":
                param = Parameter(name=_field_text(child, "name"))
            elif child.type == "typed_default_parameter":
                param = Parameter(name=_field_text(child, "name"), type=_field_text(child, "type"))
            elif child.type in ("list_splat_pattern", "dictionary_splat_pattern"):
                param = Parameter(name=node_text(child))
            else:
                continue
            if index == 0 and param.name in ("self", "cls"):
                continue
            params.append(param)
        return params

    def modifiers(self, node: Any) -> Modifiers:
        name = self.name(node) or ""
        private = name.startswith("_") and not (name.startswith("__") and name.endswith("__"))
        is_static = False
        parent = node.parent
        if parent is not None and parent.type == "decorated_definition":
            is_static = any(
                child.type == "decorator" and "staticmethod" in node_text(child)
                for child in parent.children
            )
        return Modifiers("private" if private else "public", is_static)

    def callee(self, node: Any) -> Optional[str]:
        func = node.child_by_field_name("function")
        if func is None:
            return None
        if func.type == "identifier":
            return node_text(func)
        if func.type == "attribute":
            return _field_text(func, "attribute") or None
        return None


class JavaScriptDialect(Dialect):
    language = "javascript"
    node_kinds = {
        "class_declaration": NodeKind.CLASS,
        "abstract_class_declaration": NodeKind.CLASS,
        "interface_declaration": NodeKind.CLASS,
        "method_definition": NodeKind.METHOD,
        "function_declaration": NodeKind.FUNCTION,
        "generator_function_declaration": NodeKind.FUNCTION,
        "variable_declarator": NodeKind.FUNCTION,
        "call_expression": NodeKind.CALL,
    }

    _FUNCTION_VALUES = ("arrow_function", "function_expression", "function", "generator_function")

    def __init__(self, language: str = "javascript") -> None:
        self.language = language

    def refine(self, node: Any, kind: NodeKind) -> NodeKind:
        if node.type == "variable_declarator":
            value = node.child_by_field_name("value")
            if value is None or value.type not in self._FUNCTION_VALUES:
                return NodeKind.OTHER
            return NodeKind.FUNCTION
        if kind is NodeKind.METHOD and self.name(node) == "constructor":
            return NodeKind.CONSTRUCTOR
        return kind

    def _callable_node(self, node: Any) -> Any:
        if node.type == "variable_declarator":
            return node.child_by_field_name("value") or node
        return node

    def parameters(self, node: Any) -> List[Parameter]:
        target = self._callable_node(node)
        params_node = target.child_by_field_name("parameters")
        if params_node is None:
            single = target.child_by_field_name("parameter")
            return [Parameter(name=node_text(single))] if single is not None else []
        params: List[Parameter] = []
        for child in params_node.named_children:
            if child.type in ("required_parameter", "optional_parameter"):
                params.append(Parameter(
                    name=_field_text(child, "pattern"),
                    type=_strip_annotation(_field_text(child, "type")),
                ))
            elif child.type == "assignment_pattern":
                params.append(Parameter(name=_field_text(child, "left")))
            elif child.type in ("identifier", "rest_pattern", "object_pattern", "array_pattern"):
                params.append(Parameter(name=node_text(child)))
        return params

    def return_type(self, node: Any) -> Optional[str]:
        target = self._callable_node(node)
        return _strip_annotation(_field_text(target, "return_type")) or None

    def modifiers(self, node: Any) -> Modifiers:
        visibility = self.default_visibility
        is_static = False
        for child in node.children:
            if child.type == "accessibility_modifier":
                visibility = node_text(child).strip()
            elif child.type == "static":
                is_static = True
        name_node = node.child_by_field_name("name")
        if name_node is not None and name_node.type == "private_property_identifier":
            visibility = "private"
        return Modifiers(visibility, is_static)

    def callee(self, node: Any) -> Optional[str]:
        func = node.child_by_field_name("function")
        if func is None:
            return None
        if func.type == "identifier":
            return node_text(func)
        if func.type == "member_expression":
            return _field_text(func, "property") or None
        return None


class GoDialect(Dialect):
    language = "go"
    node_kinds = {
        "type_spec": NodeKind.CLASS,
        "function_declaration": NodeKind.FUNCTION,
        "method_declaration": NodeKind.METHOD,
        "call_expression": NodeKind.CALL,
    }

    def refine(self, node: Any, kind: NodeKind) -> NodeKind:
        if node.type == "type_spec":
            type_node = node.child_by_field_name("type")
            if type_node is None or type_node.type not in ("struct_type", "interface_type"):
                return NodeKind.OTHER
        return kind

    def parameters(self, node: Any) -> List[Parameter]:
        params_node = node.child_by_field_name("parameters")
        if params_node is None:
            return []
        params: List[Parameter] = []
        for child in params_node.named_children:
            if child.type not in ("parameter_declaration", "variadic_parameter_declaration"):
                continue
            type_text = _field_text(child, "type")
            if child.type == "variadic_parameter_declaration":
                type_text = f"...{type_text}"
            names = [node_text(n) for n in child.children_by_field_name("name")]
            if not names:
                params.append(Parameter(name="", type=type_text))
            for name in names:
                params.append(Parameter(name=name, type=type_text))
        return params

    def return_type(self, node: Any) -> Optional[str]:
        return _field_text(node, "result") or None

    def modifiers(self, node: Any) -> Modifiers:
        name = self.name(node) or ""
        return Modifiers("public" if name[:1].isupper() else "private")

    def callee(self, node: Any) -> Optional[str]:
        func = node.child_by_field_name("function")
        if func is None:
            return None
        if func.type == "identifier":
            return node_text(func)
        if func.type == "selector_expression":
            return _field_text(func, "field") or None
        return None


DIALECTS: Dict[str, Dialect] = {
    "java": JavaDialect(),
    "python": PythonDialect(),
    "javascript": JavaScriptDialect("javascript"),
    "typescript": JavaScriptDialect("typescript"),
    "go": GoDialect(),
}


# ===================================================================
# Visitor
# ===================================================================

class SyntaxVisitor(ABC):
    """Depth-first walker dispatching on :class:`NodeKind`.

    Handlers are responsible for descending further by calling
    :meth:`generic_visit`.
    """

    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect
        self._handlers: Dict[NodeKind, Callable[[Any], None]] = {
            kind: getattr(self, f"visit_{kind.value}") for kind in NodeKind
        }

    def visit(self, node: Any) -> None:
        self._handlers[self.dialect.classify(node)](node)

    def generic_visit(self, node: Any) -> None:
        for child in node.children:
            self.visit(child)

    @abstractmethod
    def visit_class(self, node: Any) -> None: ...

    @abstractmethod
    def visit_method(self, node: Any) -> None: ...

    @abstractmethod
    def visit_constructor(self, node: Any) -> None: ...

    @abstractmethod
    def visit_function(self, node: Any) -> None: ...

    @abstractmethod
    def visit_call(self, node: Any) -> None: ...

    def visit_other(self, node: Any) -> None:
        self.generic_visit(node)
