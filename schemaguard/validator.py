"""Validates decoded JSON instances against loaded schema trees.

Validation never modifies the schema tree, so one tree can validate any
number of instances, also from several threads. Failures are reported as a
single `ValidationError` whose children mirror the combinators and structures
that failed.
"""

import json
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Type

from schemaguard.errors import ValidationError
from schemaguard.jsonvalue import canonical, json_type_of
from schemaguard.pointer import Pointer
from schemaguard.schema import (ALL_OF, ANY_OF, ONE_OF, ArraySchema, CombinedSchema,
                                ConditionalSchema, ConstSchema, EnumSchema, FalseSchema,
                                NotSchema, NumberSchema, ObjectSchema, ReferenceSchema,
                                Schema, StringSchema, TrueSchema, TypeSchema)

# limit for cyclic references followed without descending into the instance
DEFAULT_MAX_REFERENCE_DEPTH = 64


def _render(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _is_number(instance: Any) -> bool:
    return json_type_of(instance) in ('integer', 'number')


def _type_matches(type_name: str, instance: Any) -> bool:
    actual = json_type_of(instance)
    if type_name == 'number':
        return actual in ('integer', 'number')
    if type_name == 'integer':
        return actual == 'integer' or (actual == 'number' and float(instance).is_integer())
    return actual == type_name


def _is_multiple_of(value, divisor) -> bool:
    try:
        return Decimal(str(value)) % Decimal(str(divisor)) == 0
    except InvalidOperation:
        return False


class Validator:
    """Validates JSON instances against one schema tree."""

    def __init__(self, schema: Schema, max_depth: int = DEFAULT_MAX_REFERENCE_DEPTH):
        """Initialize the validator with a loaded schema.

        Args:
            schema: Root of a schema tree returned by the loader
            max_depth: How many cyclic references may be followed in a row on one instance value
        """
        self.schema = schema
        self.max_depth = max_depth
        self._handlers: Dict[Type[Schema], Callable[..., Optional[ValidationError]]] = {
            TrueSchema: self._validate_true,
            FalseSchema: self._validate_false,
            TypeSchema: self._validate_type,
            EnumSchema: self._validate_enum,
            ConstSchema: self._validate_const,
            StringSchema: self._validate_string,
            NumberSchema: self._validate_number,
            ObjectSchema: self._validate_object,
            ArraySchema: self._validate_array,
            CombinedSchema: self._validate_combined,
            NotSchema: self._validate_not,
            ConditionalSchema: self._validate_conditional,
            ReferenceSchema: self._validate_reference,
        }

    def validate(self, instance: Any) -> None:
        """Validates a decoded JSON instance.

        Raises:
            ValidationError: describing every violation found
            LoadError: if a deferred reference cannot be resolved
        """
        failure = self.validation_error(instance)
        if failure is not None:
            raise failure

    def validation_error(self, instance: Any) -> Optional[ValidationError]:
        """Returns the violation tree for an instance, or None if it is valid."""
        return self._validate(self.schema, instance, Pointer.root(), 0)

    def _validate(self, schema: Schema, instance: Any, pointer: Pointer,
                  depth: int) -> Optional[ValidationError]:
        handler = self._handlers.get(type(schema))
        if handler is None:
            raise TypeError(f"Unsupported schema node: {type(schema).__name__}")
        return handler(schema, instance, pointer, depth)

    @staticmethod
    def _leaf(schema: Schema, pointer: Pointer, message: str, keyword: str) -> ValidationError:
        return ValidationError(pointer, message, keyword=keyword, schema_location=schema.location)

    def _validate_true(self, schema: TrueSchema, instance, pointer, depth):
        return None

    def _validate_false(self, schema: FalseSchema, instance, pointer, depth):
        return self._leaf(schema, pointer, "false schema always fails", 'false')

    def _validate_type(self, schema: TypeSchema, instance, pointer, depth):
        if any(_type_matches(type_name, instance) for type_name in schema.types):
            return None
        return self._leaf(schema, pointer,
                          f"expected type: {' or '.join(schema.types)}, found: {json_type_of(instance)}",
                          'type')

    def _validate_enum(self, schema: EnumSchema, instance, pointer, depth):
        actual = canonical(instance)
        if any(canonical(value) == actual for value in schema.values):
            return None
        return self._leaf(schema, pointer, f"{_render(instance)} is not a valid enum value", 'enum')

    def _validate_const(self, schema: ConstSchema, instance, pointer, depth):
        if canonical(instance) == canonical(schema.value):
            return None
        return self._leaf(schema, pointer, "value does not match the const", 'const')

    def _validate_string(self, schema: StringSchema, instance, pointer, depth):
        if not isinstance(instance, str):
            return None
        failures: List[ValidationError] = []
        length = len(instance)
        if schema.min_length is not None and length < schema.min_length:
            failures.append(self._leaf(schema, pointer,
                                       f"expected minLength: {schema.min_length}, actual: {length}",
                                       'minLength'))
        if schema.max_length is not None and length > schema.max_length:
            failures.append(self._leaf(schema, pointer,
                                       f"expected maxLength: {schema.max_length}, actual: {length}",
                                       'maxLength'))
        if schema.pattern is not None and not schema.pattern.search(instance):
            failures.append(self._leaf(schema, pointer,
                                       f"string [{instance}] does not match pattern {schema.pattern.pattern}",
                                       'pattern'))
        if schema.format_validator is not None:
            message = schema.format_validator(instance)
            if message is not None:
                failures.append(self._leaf(schema, pointer, message, 'format'))
        return ValidationError.collect(pointer, failures, schema.location)

    def _validate_number(self, schema: NumberSchema, instance, pointer, depth):
        if not _is_number(instance):
            return None
        failures: List[ValidationError] = []
        if schema.minimum is not None and instance < schema.minimum:
            failures.append(self._leaf(schema, pointer,
                                       f"{instance} is not greater or equal to {schema.minimum}", 'minimum'))
        if schema.exclusive_minimum is not None and instance <= schema.exclusive_minimum:
            failures.append(self._leaf(schema, pointer,
                                       f"{instance} is not greater than {schema.exclusive_minimum}",
                                       'exclusiveMinimum'))
        if schema.maximum is not None and instance > schema.maximum:
            failures.append(self._leaf(schema, pointer,
                                       f"{instance} is not less or equal to {schema.maximum}", 'maximum'))
        if schema.exclusive_maximum is not None and instance >= schema.exclusive_maximum:
            failures.append(self._leaf(schema, pointer,
                                       f"{instance} is not less than {schema.exclusive_maximum}",
                                       'exclusiveMaximum'))
        if schema.multiple_of is not None and not _is_multiple_of(instance, schema.multiple_of):
            failures.append(self._leaf(schema, pointer,
                                       f"{instance} is not a multiple of {schema.multiple_of}", 'multipleOf'))
        return ValidationError.collect(pointer, failures, schema.location)

    def _validate_object(self, schema: ObjectSchema, instance, pointer, depth):
        if not isinstance(instance, dict):
            return None
        failures: List[ValidationError] = []
        size = len(instance)
        if schema.min_properties is not None and size < schema.min_properties:
            failures.append(self._leaf(schema, pointer,
                                       f"minimum size: [{schema.min_properties}], found: [{size}]",
                                       'minProperties'))
        if schema.max_properties is not None and size > schema.max_properties:
            failures.append(self._leaf(schema, pointer,
                                       f"maximum size: [{schema.max_properties}], found: [{size}]",
                                       'maxProperties'))
        for key in schema.required:
            if key not in instance:
                failures.append(self._leaf(schema, pointer, f"required key [{key}] not found", 'required'))

        for key, value in instance.items():
            child = pointer.child(key)
            if schema.property_names is not None:
                failure = self._validate(schema.property_names, key, child, 0)
                if failure is not None:
                    failures.append(failure)
            matched = False
            if key in schema.properties:
                matched = True
                failure = self._validate(schema.properties[key], value, child, 0)
                if failure is not None:
                    failures.append(failure)
            for pattern, pattern_schema in schema.pattern_properties:
                if pattern.search(key):
                    matched = True
                    failure = self._validate(pattern_schema, value, child, 0)
                    if failure is not None:
                        failures.append(failure)
            if matched or schema.additional_properties is None:
                continue
            if isinstance(schema.additional_properties, FalseSchema):
                failures.append(self._leaf(schema, pointer, f"extraneous key [{key}] is not permitted",
                                           'additionalProperties'))
            else:
                failure = self._validate(schema.additional_properties, value, child, 0)
                if failure is not None:
                    failures.append(failure)

        for key, dependencies in schema.property_dependencies.items():
            if key not in instance:
                continue
            for dependency in dependencies:
                if dependency not in instance:
                    failures.append(self._leaf(schema, pointer,
                                               f"property [{dependency}] is required by [{key}]",
                                               'dependencies'))
        for key, dependency_schema in schema.schema_dependencies.items():
            if key in instance:
                failure = self._validate(dependency_schema, instance, pointer, depth)
                if failure is not None:
                    failures.append(failure)
        return ValidationError.collect(pointer, failures, schema.location)

    def _validate_array(self, schema: ArraySchema, instance, pointer, depth):
        if not isinstance(instance, list):
            return None
        failures: List[ValidationError] = []
        count = len(instance)
        if schema.min_items is not None and count < schema.min_items:
            failures.append(self._leaf(schema, pointer,
                                       f"expected minimum item count: {schema.min_items}, found: {count}",
                                       'minItems'))
        if schema.max_items is not None and count > schema.max_items:
            failures.append(self._leaf(schema, pointer,
                                       f"expected maximum item count: {schema.max_items}, found: {count}",
                                       'maxItems'))
        if schema.unique_items:
            seen = set()
            for item in instance:
                key = canonical(item)
                if key in seen:
                    failures.append(self._leaf(schema, pointer, "array items are not unique", 'uniqueItems'))
                    break
                seen.add(key)

        for index, item in enumerate(instance):
            child = pointer.child(index)
            if schema.all_items is not None:
                item_schema = schema.all_items
            elif schema.item_schemas is not None and index < len(schema.item_schemas):
                item_schema = schema.item_schemas[index]
            elif schema.item_schemas is not None and schema.additional_items is not None:
                item_schema = schema.additional_items
                if isinstance(item_schema, FalseSchema):
                    failures.append(self._leaf(schema, pointer,
                                               f"extraneous item at index [{index}] is not permitted",
                                               'additionalItems'))
                    continue
            else:
                continue
            failure = self._validate(item_schema, item, child, 0)
            if failure is not None:
                failures.append(failure)

        if schema.contains is not None and not any(
                self._validate(schema.contains, item, pointer.child(index), 0) is None
                for index, item in enumerate(instance)):
            failures.append(self._leaf(schema, pointer,
                                       "expected at least one array item to match 'contains' schema",
                                       'contains'))
        return ValidationError.collect(pointer, failures, schema.location)

    def _validate_combined(self, schema: CombinedSchema, instance, pointer, depth):
        failures: List[ValidationError] = []
        matched: List[int] = []
        for index, subschema in enumerate(schema.subschemas):
            failure = self._validate(subschema, instance, pointer, depth)
            if failure is None:
                matched.append(index)
            else:
                failures.append(failure)

        total = len(schema.subschemas)
        if schema.synthetic:
            return ValidationError.collect(pointer, failures, schema.location)
        if schema.kind == ALL_OF:
            if not failures:
                return None
            message = f"{len(failures)} of {total} subschemas failed"
        elif schema.kind == ANY_OF:
            if matched:
                return None
            message = f"no subschema matched out of the total {total} subschemas"
        elif schema.kind == ONE_OF:
            if len(matched) == 1:
                return None
            if not matched:
                message = f"no subschema matched out of the total {total} subschemas"
            else:
                message = (f"{len(matched)} subschemas matched instead of one "
                           f"(indices {', '.join(str(i) for i in matched)})")
        else:
            raise ValueError(f"Unknown combinator: {schema.kind}")
        return ValidationError(pointer, message, failures, keyword=schema.kind,
                               schema_location=schema.location)

    def _validate_not(self, schema: NotSchema, instance, pointer, depth):
        if self._validate(schema.subschema, instance, pointer, depth) is not None:
            return None
        return self._leaf(schema, pointer, "subject must not be valid against schema", 'not')

    def _validate_conditional(self, schema: ConditionalSchema, instance, pointer, depth):
        if self._validate(schema.if_schema, instance, pointer, depth) is None:
            branch, branch_schema = 'then', schema.then_schema
        else:
            branch, branch_schema = 'else', schema.else_schema
        if branch_schema is None:
            return None
        failure = self._validate(branch_schema, instance, pointer, depth)
        if failure is None:
            return None
        return ValidationError(pointer, f'input is invalid against the "{branch}" schema', [failure],
                               keyword=branch, schema_location=schema.location)

    def _validate_reference(self, schema: ReferenceSchema, instance, pointer, depth):
        if depth >= self.max_depth:
            return self._leaf(schema, pointer,
                              f"maximum reference depth {self.max_depth} exceeded", '$ref')
        return self._validate(schema.resolve(), instance, pointer, depth + 1)


def validation_error(schema: Schema, instance: Any) -> Optional[ValidationError]:
    """Returns the violation tree of an instance, or None if it is valid."""
    return Validator(schema).validation_error(instance)


def validate(schema: Schema, instance: Any) -> None:
    """Validates an instance, raising ValidationError if it is invalid."""
    Validator(schema).validate(instance)
