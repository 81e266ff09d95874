import inspect
import types
import re
from abc import abstractmethod
from typing import Any, Dict, List, Literal, Optional, Type, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel, ConfigDict, create_model

from finch_service.core.interfaces import Tool

# =============================
# Tool Authoring Guidelines
# =============================
#
# To create a new tool:
# 1. Subclass BaseTool, set `tool_name`, and implement the async run() method
#    with explicit, type-annotated keyword arguments.
# 2. Use a Google-style docstring with an Args: section, e.g.:
#
#     class ReadFileTool(BaseTool):
#         """
#         Read the contents of a file.
#         Args:
#             path: Absolute path to the file
#         """
#         tool_name = "read_file"
#
#         async def run(self, path: str) -> ToolResult:
#             ...
#
# 3. The advertised schema and the argument validator are both derived from
#    the run() signature, so they cannot drift apart.
# 4. The first paragraph of the class docstring is the tool description.
#
# Return a ToolResult (success/output/error). Returning ToolResult(success=False)
# reports a failure the model can read; raising is reserved for crashes, and
# raising TimeoutError marks the call as timed out.


def _json_type(hint: Any) -> Dict[str, Any]:
    """Map a Python annotation onto a JSON schema fragment."""
    origin = get_origin(hint)
    if origin is Union or origin is types.UnionType:
        inner = [a for a in get_args(hint) if a is not type(None)]
        return _json_type(inner[0]) if inner else {"type": "string"}
    if origin is Literal:
        values = list(get_args(hint))
        schema = _json_type(type(values[0])) if values else {"type": "string"}
        schema["enum"] = values
        return schema
    if origin in (list, List):
        args = get_args(hint)
        return {"type": "array", "items": _json_type(args[0]) if args else {}}
    if origin in (dict, Dict) or hint is dict:
        return {"type": "object"}
    if hint is bool:
        return {"type": "boolean"}
    if hint is int:
        return {"type": "integer"}
    if hint is float:
        return {"type": "number"}
    if hint is list:
        return {"type": "array"}
    return {"type": "string"}


class BaseTool(Tool):

    tool_name: Optional[str] = None

    def __init__(self):
        self._registry_name: str | None = None
        self._args_model: Type[BaseModel] | None = None

    @staticmethod
    def _extract_param_descriptions(docstring: str) -> dict:
        """
        Parse the docstring for an Args: section and return a mapping of param name to description.
        Supports Google-style docstrings.
        """
        if not docstring:
            return {}
        param_desc = {}
        args_section = re.search(r"Args?:\s*(.*?)(^\s*Returns?:|\Z)", docstring, re.DOTALL | re.MULTILINE)
        if args_section:
            args_text = args_section.group(1)
            for line in args_text.splitlines():
                match = re.match(r"\s*(\w+)\s*:\s*(.*)", line)
                if match:
                    name, desc = match.groups()
                    param_desc[name] = desc.strip()
        return param_desc

    def _run_parameters(self):
        sig = inspect.signature(self.run)
        hints = get_type_hints(self.run)
        for name, param in sig.parameters.items():
            if name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            yield name, param, hints.get(name, str)

    @property
    def name(self) -> str:
        # Use registry name if set, then the declared tool name, then class name
        if self._registry_name:
            return self._registry_name
        return self.tool_name or self.__class__.__name__

    @property
    def description(self) -> str:
        doc = inspect.cleandoc(self.__doc__ or "")
        summary = re.split(r"\n\s*\n|\n\s*Args?:", doc, maxsplit=1)[0]
        return " ".join(summary.split())

    @property
    def auto_schema(self) -> Dict[str, Any]:
        docstring = self.__doc__ or self.run.__doc__ or ""
        param_docs = self._extract_param_descriptions(docstring)
        params = {}
        required = []
        for name, param, hint in self._run_parameters():
            prop = _json_type(hint)
            prop["description"] = param_docs.get(name, "")
            if param.default is inspect.Parameter.empty:
                required.append(name)
            elif param.default is not None:
                prop["default"] = param.default
            params[name] = prop
        return self.build_schema(
            function_name=self.name,
            description=self.description,
            parameters=params,
            required=required,
        )

    @staticmethod
    def build_schema(
        function_name: str,
        description: str,
        parameters: dict,
        required: 'Optional[list[str]]' = None,
    ) -> dict:
        """
        Build a standard function tool schema.
        Args:
            function_name: Name of the function/tool.
            description: Description of the tool.
            parameters: Dict of parameter names to their JSON schema (type, description, etc).
            required: List of required parameter names.
        Returns:
            dict: Schema for the tool.
        """
        return {
            "type": "function",
            "function": {
                "name": function_name,
                "description": description,
                "parameters": {
                    "type": "object",
                    "properties": parameters,
                    "required": required or [],
                },
            },
        }

    @property
    def schema(self) -> Dict[str, Any]:
        return self.auto_schema

    @property
    def args_model(self) -> Type[BaseModel]:
        if self._args_model is None:
            fields: Dict[str, Any] = {}
            for name, param, hint in self._run_parameters():
                default = ... if param.default is inspect.Parameter.empty else param.default
                fields[name] = (hint, default)
            self._args_model = create_model(
                f"{self.__class__.__name__}Args",
                __config__=ConfigDict(extra="forbid"),
                **fields,
            )
        return self._args_model

    def validate_arguments(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and coerce arguments; raises pydantic.ValidationError."""
        return self.args_model.model_validate(arguments).model_dump()

    @abstractmethod
    async def run(self, *args, **kwargs) -> Any:
        """Execute tool with given arguments (auto-schema will match signature)."""
        raise NotImplementedError()
