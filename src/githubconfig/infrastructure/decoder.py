import json
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from githubconfig.domain.exceptions import DecodeFailure, UnsupportedExtensionError

YAML_EXTENSIONS = {".yml", ".yaml"}
JSON_EXTENSIONS = {".json"}


def _parse(content: str, extension: str) -> Any:
    if extension in YAML_EXTENSIONS:
        # An empty document loads as None
        data = yaml.safe_load(content)
        return {} if data is None else data

    if extension in JSON_EXTENSIONS:
        return json.loads(content)

    raise UnsupportedExtensionError(extension)


def decode(content: str, extension: str, out: Any = None) -> Any:
    """
    Decodes the raw content of a configuration file into the requested output.

    Args:
        content (str): Raw text of the file.
        extension (str): File extension including the leading dot; selects the parser.
        out (Any): Output target. A pydantic model class yields a validated instance,
            a dict is updated in place, and None yields the parsed data as is.

    Returns:
        Any: The decoded output.

    Raises:
        UnsupportedExtensionError: When no parser handles the extension.
        DecodeFailure: When the content is malformed or does not fit out.
    """
    try:
        data = _parse(content, extension.lower())
    except (yaml.YAMLError, ValueError, RecursionError) as e:
        raise DecodeFailure(f"Failed to parse {extension} content: {e}") from e

    if out is None:
        return data

    if isinstance(out, type) and issubclass(out, BaseModel):
        try:
            return out.model_validate(data)
        except ValidationError as e:
            raise DecodeFailure(f"Content does not match {out.__name__}: {e}") from e

    if isinstance(out, dict):
        if not isinstance(data, dict):
            raise DecodeFailure(f"Expected a mapping but got {type(data).__name__}.")
        out.update(data)
        return out

    raise DecodeFailure(f"Unsupported output target: {type(out).__name__}")
