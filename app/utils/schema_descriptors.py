"""Declarative object shapes and the descriptors derived from them.

One shape declaration feeds three consumers:

•  ``to_discovery_descriptor``  – the flat query-parameter summary handed to the
   payment gate for service discovery (``required`` comes from default presence).
•  ``to_generic_schema``        – a JSON-Schema tree describing inputs or outputs.
•  ``build_model``              – a pydantic model the route handlers validate with.

All of this runs once at startup; malformed shapes raise ``SchemaDefinitionError``.
"""

from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    create_model,
    model_validator,
)

from app.errors import SchemaDefinitionError

FieldType = Literal["string", "number", "integer", "boolean", "object", "array"]
Number = Union[int, float]


class FieldSpec(BaseModel):
    """One field of an object shape."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: FieldType = "string"
    description: Optional[str] = None
    default: Any = None
    optional: bool = False  # may be absent without a default
    nullable: bool = False
    enum: Optional[List[Any]] = None
    const: Any = None
    format: Optional[str] = None
    pattern: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    minimum: Optional[Number] = None
    maximum: Optional[Number] = None
    properties: Optional[Dict[str, "FieldSpec"]] = None
    items: Optional["FieldSpec"] = None

    @model_validator(mode="after")
    def _check_nesting(self):
        if self.properties is not None and self.type != "object":
            raise ValueError(f"'properties' requires type 'object', got {self.type!r}")
        if self.items is not None and self.type != "array":
            raise ValueError(f"'items' requires type 'array', got {self.type!r}")
        if self.enum is not None and not self.enum:
            raise ValueError("'enum' must list at least one value")
        return self

    # presence, not truthiness: default=None / 0 / False / "" all count
    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set

    @property
    def has_const(self) -> bool:
        return "const" in self.model_fields_set

    @property
    def is_required(self) -> bool:
        return not (self.has_default or self.optional)


FieldSpec.model_rebuild()

Shape = Mapping[str, Union[FieldSpec, Mapping[str, Any]]]

# (FieldSpec attribute, JSON-Schema keyword)
_KEYWORDS = (
    ("enum", "enum"),
    ("format", "format"),
    ("pattern", "pattern"),
    ("min_length", "minLength"),
    ("max_length", "maxLength"),
    ("minimum", "minimum"),
    ("maximum", "maximum"),
)
_ARRAY_KEYWORDS = {"minLength": "minItems", "maxLength": "maxItems"}


def normalize_shape(shape: Shape) -> Dict[str, FieldSpec]:
    """Check that ``shape`` is an object-of-fields and coerce dict entries."""
    if not isinstance(shape, Mapping):
        raise SchemaDefinitionError(
            f"Shape must be a mapping of field name to field spec, got {type(shape).__name__}"
        )

    fields: Dict[str, FieldSpec] = {}
    for name, spec in shape.items():
        if not isinstance(name, str) or not name:
            raise SchemaDefinitionError(f"Field names must be non-empty strings, got {name!r}")
        if isinstance(spec, FieldSpec):
            fields[name] = spec
            continue
        if not isinstance(spec, Mapping):
            raise SchemaDefinitionError(
                f"Field {name!r} must be a FieldSpec or mapping, got {type(spec).__name__}"
            )
        try:
            fields[name] = FieldSpec.model_validate(dict(spec))
        except ValidationError as e:
            raise SchemaDefinitionError(f"Invalid definition for field {name!r}: {e}") from e
    return fields


# ---------------------------------------------------------------------------
# JSON-Schema rendering
# ---------------------------------------------------------------------------


def _field_schema(field: FieldSpec, openapi: bool) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": field.type}
    if field.has_const:
        schema["const"] = field.const
    for attr, keyword in _KEYWORDS:
        value = getattr(field, attr)
        if value is not None:
            if field.type == "array":
                keyword = _ARRAY_KEYWORDS.get(keyword, keyword)
            schema[keyword] = value
    if field.type == "object":
        schema.update(_object_schema(field.properties or {}, openapi))
    if field.type == "array" and field.items is not None:
        schema["items"] = _field_schema(field.items, openapi)

    if field.nullable:
        if openapi:
            schema["nullable"] = True
        else:
            schema = {"anyOf": [schema, {"type": "null"}]}

    if field.description is not None:
        schema["description"] = field.description
    if field.has_default:
        schema["default"] = field.default
    return schema


def _object_schema(fields: Mapping[str, FieldSpec], openapi: bool) -> Dict[str, Any]:
    schema: Dict[str, Any] = {
        "type": "object",
        "properties": {name: _field_schema(f, openapi) for name, f in fields.items()},
    }
    required = [name for name, f in fields.items() if f.is_required]
    if required:
        schema["required"] = required
    return schema


def to_generic_schema(shape: Shape) -> Dict[str, Any]:
    """Direct JSON-Schema translation of ``shape``."""
    return _object_schema(normalize_shape(shape), openapi=False)


def to_discovery_descriptor(shape: Shape, method: str = "GET") -> Dict[str, Any]:
    """Query-parameter discovery descriptor for a GET endpoint.

    Every top-level field keeps its own schema and gains ``required``, which is
    true exactly when the field declares no default.
    """
    method = method.upper()
    if method == "POST":
        return to_discovery_descriptor_post(shape)
    if method != "GET":
        raise SchemaDefinitionError(f"Unsupported discovery method {method!r}")

    query_params: Dict[str, Dict[str, Any]] = {}
    for name, field in normalize_shape(shape).items():
        entry = _field_schema(field, openapi=True)
        entry.setdefault("description", f"{field.type} parameter")
        entry["required"] = not field.has_default
        query_params[name] = entry

    return {"type": "http", "method": "GET", "queryParams": query_params}


def to_discovery_descriptor_post(shape: Shape) -> Dict[str, Any]:
    return {
        "type": "http",
        "method": "POST",
        "bodyType": "json",
        "bodyFields": _object_schema(normalize_shape(shape), openapi=True),
    }


# ---------------------------------------------------------------------------
# Validation model
# ---------------------------------------------------------------------------

_PLAIN_TYPES = {"string": str, "integer": int, "boolean": bool}
_STRICT_TYPES = {"string": StrictStr, "integer": StrictInt, "boolean": StrictBool}


def _constrained(base: Any, field: FieldSpec) -> Any:
    constraints = {
        "min_length": field.min_length,
        "max_length": field.max_length,
        "pattern": field.pattern,
        "ge": field.minimum,
        "le": field.maximum,
    }
    constraints = {k: v for k, v in constraints.items() if v is not None}
    if not constraints:
        return base
    return Annotated[base, Field(**constraints)]


def _exact_choice(choices: List[Any]):
    # Literal compares by ==, so 1 and 1.0 would pass for True
    def check(value: Any) -> Any:
        for expected in choices:
            if type(value) is type(expected) and value == expected:
                return value
        raise ValueError(f"Input should be {' or '.join(repr(c) for c in choices)}")

    return check


def _annotation(name: str, field: FieldSpec, strict: bool) -> Any:
    if field.has_const:
        if strict:
            annotation = Annotated[Any, AfterValidator(_exact_choice([field.const]))]
        else:
            annotation = Literal[field.const]
    elif field.enum is not None:
        if strict:
            annotation = Annotated[Any, AfterValidator(_exact_choice(field.enum))]
        else:
            annotation = Literal[tuple(field.enum)]
    elif field.type == "number":
        if strict:
            # keep ints as ints so validated payloads serialize unchanged
            annotation = Union[
                _constrained(StrictInt, field), _constrained(StrictFloat, field)
            ]
        else:
            annotation = _constrained(float, field)
    elif field.type == "object":
        annotation = build_model(name.title().replace("_", ""), field.properties or {}, strict)
    elif field.type == "array":
        item = _annotation(name + "_item", field.items, strict) if field.items else Any
        annotation = _constrained(List[item], field)
    else:
        base = (_STRICT_TYPES if strict else _PLAIN_TYPES)[field.type]
        annotation = _constrained(base, field)

    if field.nullable or (field.optional and not field.has_default):
        annotation = Optional[annotation]
    return annotation


def build_model(name: str, shape: Shape, strict: bool = False) -> type:
    """Generate a pydantic model that validates data against ``shape``."""
    definitions: Dict[str, Any] = {}
    for field_name, field in normalize_shape(shape).items():
        if field.has_default:
            default = field.default
        elif field.optional:
            default = None
        else:
            default = ...
        definitions[field_name] = (
            _annotation(field_name, field, strict),
            Field(default, description=field.description),
        )
    return create_model(
        name, __config__=ConfigDict(strict=strict, frozen=True), **definitions
    )
