"""Validates JSON instance files against JSON Schema files.

This module is the host side of schemaguard: it reads files, decodes JSON,
configures the loader and turns diagnostics into printable results. The
command line functions at the bottom are wired up through `commands.json`.
"""

import json
import sys
from typing import Any, List, Optional, Tuple

from schemaguard.config import LoaderConfig
from schemaguard.errors import LoadError
from schemaguard.resolver import DocumentResolver, file_uri
from schemaguard.schema import Schema
from schemaguard.schemaloader import SchemaLoader
from schemaguard.validator import Validator


class ValidationResult:
    """Result of validating a JSON instance against a schema."""

    def __init__(self, is_valid: bool, errors: List[str] = None, instance_path: str = None):
        self.is_valid = is_valid
        self.errors = errors or []
        self.instance_path = instance_path

    def __str__(self) -> str:
        if self.is_valid:
            return f"✓ Valid" + (f": {self.instance_path}" if self.instance_path else "")
        else:
            prefix = f"{self.instance_path}: " if self.instance_path else ""
            return f"✗ Invalid: {prefix}" + "; ".join(self.errors)

    def __repr__(self) -> str:
        return f"ValidationResult(is_valid={self.is_valid}, errors={self.errors})"


def read_json_file(file_path: str) -> Any:
    with open(file_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def load_schema_file(schema_file: str, strict_formats: bool = False,
                     strict_keywords: bool = False) -> Tuple[Schema, Any]:
    """Loads a schema file, resolving relative `$ref`s against its location.

    Returns:
        The loaded schema and the decoded schema document

    Raises:
        LoadError: if the document is not a valid schema
    """
    document = read_json_file(schema_file)
    config = LoaderConfig(strict_formats=strict_formats, strict_keywords=strict_keywords,
                          base_uri=file_uri(schema_file))
    return SchemaLoader(document, DocumentResolver(), config).load(), document


def validate_instance(instance: Any, schema: Schema) -> ValidationResult:
    """Validates a decoded JSON instance against a loaded schema.

    Args:
        instance: The JSON value to validate
        schema: The loaded schema

    Returns:
        ValidationResult with validation status and any errors
    """
    failure = Validator(schema).validation_error(instance)
    if failure is None:
        return ValidationResult(is_valid=True)
    return ValidationResult(is_valid=False, errors=failure.all_messages())


def read_instances(instance_file: str, schema_is_array: bool = False) -> List[Tuple[Any, str, Optional[str]]]:
    """Reads the instances held in a file.

    A file holds one JSON document, an array of documents (one instance per
    element unless the schema expects an array) or JSON Lines.

    Returns:
        (instance, instance path, decode error) triples
    """
    with open(instance_file, 'r', encoding='utf-8') as f:
        content = f.read().strip()

    try:
        data = json.loads(content)
        if isinstance(data, list) and not schema_is_array:
            return [(item, f"{instance_file}[{i}]", None) for i, item in enumerate(data)]
        return [(data, instance_file, None)]
    except json.JSONDecodeError:
        pass

    instances = []
    for i, line in enumerate(content.split('\n')):
        line = line.strip()
        if not line:
            continue
        try:
            instances.append((json.loads(line), f"{instance_file}:{i+1}", None))
        except json.JSONDecodeError as e:
            instances.append((None, f"{instance_file}:{i+1}", f"invalid JSON: {e}"))
    return instances


def validate_file(instance_file: str, schema_file: str, strict_formats: bool = False) -> List[ValidationResult]:
    """Validates JSON instance file(s) against a schema file.

    Args:
        instance_file: Path to JSON file (single object, array, or JSONL)
        schema_file: Path to the JSON Schema file
        strict_formats: Reject unknown `format` names while loading the schema

    Returns:
        List of ValidationResult for each instance in the file
    """
    schema, document = load_schema_file(schema_file, strict_formats=strict_formats)
    return _validate_loaded(instance_file, schema, document)


def _validate_loaded(instance_file: str, schema: Schema, document: Any) -> List[ValidationResult]:
    schema_is_array = isinstance(document, dict) and document.get('type') == 'array'
    results = []
    for instance, path, decode_error in read_instances(instance_file, schema_is_array):
        if decode_error is not None:
            result = ValidationResult(is_valid=False, errors=[decode_error])
        else:
            result = validate_instance(instance, schema)
        result.instance_path = path
        results.append(result)
    return results


def validate_json_instances(
    input_files: List[str],
    schema_file: str,
    strict_formats: bool = False,
    verbose: bool = False
) -> Tuple[int, int]:
    """Validates multiple JSON instance files against a schema.

    Returns:
        Tuple of (valid_count, invalid_count)
    """
    schema, document = load_schema_file(schema_file, strict_formats=strict_formats)
    valid_count = 0
    invalid_count = 0

    for input_file in input_files:
        for result in _validate_loaded(input_file, schema, document):
            if result.is_valid:
                valid_count += 1
            else:
                invalid_count += 1
            if verbose:
                print(result)

    return valid_count, invalid_count


# Command entry points for the schemaguard CLI
def validate(
    input: List[str],
    schema: str,
    strict_formats: bool = False,
    quiet: bool = False
) -> None:
    """Validates JSON instances against a JSON Schema.

    Args:
        input: List of JSON files to validate
        schema: Path to the schema file
        strict_formats: Reject unknown `format` names
        quiet: Suppress output, exit with code 0 if valid, 1 if invalid
    """
    valid_count, invalid_count = validate_json_instances(
        input_files=input,
        schema_file=schema,
        strict_formats=strict_formats,
        verbose=not quiet
    )

    if not quiet:
        total = valid_count + invalid_count
        print(f"\nValidation summary: {valid_count}/{total} instances valid")

    if invalid_count > 0:
        sys.exit(1)


def check_schema(schema: str, strict_formats: bool = False, strict_keywords: bool = False) -> None:
    """Loads a schema file and reports whether it is a valid schema."""
    try:
        load_schema_file(schema, strict_formats=strict_formats, strict_keywords=strict_keywords)
    except LoadError as e:
        print(f"✗ Invalid schema: {e}")
        sys.exit(1)
    print(f"✓ Valid schema: {schema}")
