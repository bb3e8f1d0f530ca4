"""
Declarative reshaping of upstream search responses.

A transform either selects the result list by path or maps every item of
that list onto new fields::

    {
        "list": "result.songs",
        "fields": {
            "id": "id",
            "name": "name",
            "artist": "ar[*].name | join:/",
            "album": "al.name",
            "pic": "al.picUrl | default:"
        }
    }

Paths are dot separated keys with ``[n]`` indices and ``[*]`` fan-out.
Field expressions pipe the selected value through a fixed set of filters.
"""
import json
import logging
import re
from typing import Any, Callable, Optional, Union

logger = logging.getLogger(__name__)

_SEGMENT = re.compile(r"([\w\-@]+)|\[(\*|-?\d+)\]")
_PATH = re.compile(r"^\$?(?:\.?[\w\-@]+|\[(?:\*|-?\d+)\])?(?:\.[\w\-@]+|\[(?:\*|-?\d+)\])*$")


class TransformError(Exception):
    pass


def _split_path(path: str) -> list[Union[str, int, None]]:
    if not isinstance(path, str):
        raise TransformError(f"invalid path: {path!r}")
    path = path.strip()
    if not _PATH.match(path):
        raise TransformError(f"invalid path: {path!r}")
    if path.startswith("$"):
        path = path[1:]
    segments: list[Union[str, int, None]] = []
    for key, index in _SEGMENT.findall(path):
        if key:
            segments.append(key)
        elif index == "*":
            segments.append(None)
        else:
            segments.append(int(index))
    return segments


def _step(value: Any, segment: Union[str, int]) -> Any:
    if isinstance(segment, int):
        if isinstance(value, list) and -len(value) <= segment < len(value):
            return value[segment]
        return None
    if isinstance(value, dict):
        return value.get(segment)
    if isinstance(value, list) and segment.isdigit():
        return _step(value, int(segment))
    return None


def select(data: Any, path: str) -> Any:
    """Resolve ``path`` against ``data``; missing keys resolve to ``None``."""
    segments = _split_path(path)
    return _walk(data, segments)


def _walk(value: Any, segments: list[Union[str, int, None]]) -> Any:
    for position, segment in enumerate(segments):
        if segment is None:
            if not isinstance(value, list):
                return []
            rest = segments[position + 1:]
            return [_walk(item, rest) for item in value]
        value = _step(value, segment)
        if value is None:
            return None
    return value


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _join(value: Any, sep: Optional[str]) -> Any:
    if not isinstance(value, list):
        return value
    return (sep if sep is not None else "/").join(_text(item) for item in value if item is not None)


def _first(value: Any, _: Optional[str]) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _default(value: Any, arg: Optional[str]) -> Any:
    return arg if value in (None, "", []) else value


def _prefix(value: Any, arg: Optional[str]) -> Any:
    return None if value in (None, "") else f"{arg or ''}{_text(value)}"


def _suffix(value: Any, arg: Optional[str]) -> Any:
    return None if value in (None, "") else f"{_text(value)}{arg or ''}"


def _format(value: Any, arg: Optional[str]) -> Any:
    if value in (None, ""):
        return None
    if not arg or "{}" not in arg:
        raise TransformError("format needs a '{}' marker")
    return arg.replace("{}", _text(value))


def _replace(value: Any, arg: Optional[str]) -> Any:
    if not arg or "," not in arg:
        raise TransformError("replace needs 'old,new'")
    old, new = arg.split(",", 1)
    return None if value is None else _text(value).replace(old, new)


FILTERS: dict[str, Callable[[Any, Optional[str]], Any]] = {
    "join": _join,
    "first": _first,
    "default": _default,
    "str": lambda value, _: _text(value),
    "prefix": _prefix,
    "suffix": _suffix,
    "format": _format,
    "replace": _replace,
}


def _unquote(arg: str) -> str:
    if len(arg) >= 2 and arg[0] == arg[-1] and arg[0] in "\"'":
        return arg[1:-1]
    return arg


class FieldExpression:
    """A compiled ``path | filter:arg | ...`` expression."""

    def __init__(self, source: str):
        if not isinstance(source, str) or not source.strip():
            raise TransformError(f"invalid field expression: {source!r}")
        path, *filters = source.split("|")
        self.segments = _split_path(path)
        self.filters: list[tuple[Callable[[Any, Optional[str]], Any], Optional[str]]] = []
        for spec in filters:
            name, sep, arg = spec.strip().partition(":")
            if name not in FILTERS:
                raise TransformError(f"unknown filter: {name!r}")
            self.filters.append((FILTERS[name], _unquote(arg) if sep else None))

    def __call__(self, item: Any) -> Any:
        value = _walk(item, self.segments)
        for func, arg in self.filters:
            value = func(value, arg)
        return value


class Transform:
    """Compiled transform spec; see the module docstring for the format."""

    def __init__(self, spec: Union[str, dict[str, Any]]):
        spec = self._coerce(spec)
        unknown = set(spec) - {"list", "fields"}
        if unknown:
            raise TransformError(f"unknown transform keys: {sorted(unknown)}")
        self.list_path = _split_path(spec.get("list") or "$")
        fields = spec.get("fields")
        if fields is not None and not isinstance(fields, dict):
            raise TransformError("'fields' must be an object")
        self.fields = {key: FieldExpression(expr) for key, expr in (fields or {}).items()}

    @staticmethod
    def _coerce(spec: Union[str, dict[str, Any]]) -> dict[str, Any]:
        if isinstance(spec, dict):
            return spec
        if not isinstance(spec, str):
            raise TransformError(f"unsupported transform: {type(spec).__name__}")
        text = spec.strip()
        if text.startswith("{"):
            try:
                parsed = json.loads(text)
            except ValueError as e:
                raise TransformError(f"invalid transform JSON: {e}") from e
            if not isinstance(parsed, dict):
                raise TransformError("transform JSON must be an object")
            return parsed
        return {"list": text}

    def apply(self, data: Any) -> list[Any]:
        items = _walk(data, self.list_path)
        if not isinstance(items, list):
            return []
        if not self.fields:
            return items
        return [
            {key: expr(item) for key, expr in self.fields.items()}
            for item in items
            if isinstance(item, dict)
        ]


def apply_transform(raw: str, spec: Union[str, dict[str, Any], None], label: str = "") -> list[Any]:
    """Parse ``raw`` as JSON and reshape it into a result list.

    Never raises: malformed bodies, bad specs and non-list results all come
    back as an empty list.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.error(f"[{label}] 响应解析失败: {e}")
        return []

    if spec is None:
        return data if isinstance(data, list) else []

    try:
        results = Transform(spec).apply(data)
    except TransformError as e:
        logger.error(f"[{label}] transform 执行失败: {e}")
        return []
    return results if isinstance(results, list) else []
