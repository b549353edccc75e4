"""
Grade notation schemes and conversion between them.

An EvaluationSystem stores its settings as JSON; ``build_scheme`` turns that
JSON into one of the scheme classes below, each of which knows how to read a
raw value and how to display a numeric grade.

Config layout per type::

    numeric:     {"min_value": 0, "max_value": 10, "passing_grade": 6,
                  "decimal_places": 1, "allow_fractions": true}
    conceptual:  {"concepts": [{"symbol": "A", "description": "Excellent",
                                "min_value": 9, "max_value": 10, "passing": true}, ...]}
    descriptive: {"categories": [{"name": "Participation", "weight": 1}],
                  "performance_levels": [{"name": "Achieved", "value": 8,
                                          "passing": true}, ...]}
    custom:      free-form
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.core.exceptions import ValidationError

from . import config
from .calculations import to_decimal
from .choices import EvaluationSystemType


def _parse_number(value):
    """Return value as a finite Decimal, or None if it is not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def _round(value, places):
    try:
        return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(
            f"'{value}' is out of range for this evaluation system.",
            code='invalid_grade'
        )


def _format(value):
    """Display form of a rounded Decimal ('7.5', '8', '6.25')."""
    return format(value, 'f')


class Scheme:
    """Base scheme: bare numeric display with a default passing grade."""

    kind = None

    def __init__(self, decimal_places=None, passing_grade=None):
        if decimal_places is None:
            decimal_places = config.DEFAULT_CONVERSION_DECIMAL_PLACES
        if passing_grade is None:
            passing_grade = config.DEFAULT_PASSING_GRADE
        self.decimal_places = int(decimal_places)
        self.passing_grade = to_decimal(passing_grade)

    def lookup_symbol(self, value):
        """Numeric equivalent of a symbolic value, or None."""
        return None

    def to_number(self, value):
        number = _parse_number(value)
        if number is None:
            number = self.lookup_symbol(value)
        if number is None:
            raise ValidationError(
                f"'{value}' is neither a number nor a value known to this evaluation system.",
                code='invalid_grade'
            )
        return _round(number, self.decimal_places)

    def numeric_display(self, number):
        return {
            'value': number,
            'display': _format(number),
            'passing': number >= self.passing_grade,
        }

    def display(self, number):
        return self.numeric_display(number)

    def convert(self, value):
        """
        Convert a raw value to ``{'value', 'display', 'passing'}``.

        Raises:
            ValidationError: value is not numeric and not a known symbol
        """
        return self.display(self.to_number(value))


class NumericScheme(Scheme):
    kind = EvaluationSystemType.NUMERIC

    def __init__(self, min_value=0, max_value=10, passing_grade=None,
                 decimal_places=None, allow_fractions=True):
        super().__init__(decimal_places=decimal_places, passing_grade=passing_grade)
        self.min_value = to_decimal(min_value)
        self.max_value = to_decimal(max_value)
        self.allow_fractions = allow_fractions
        if not allow_fractions:
            self.decimal_places = 0

    @classmethod
    def from_config(cls, data):
        return cls(
            min_value=data.get('min_value', 0),
            max_value=data.get('max_value', 10),
            passing_grade=data.get('passing_grade'),
            decimal_places=data.get('decimal_places'),
            allow_fractions=data.get('allow_fractions', True),
        )

    def to_number(self, value):
        """
        Raises:
            ValidationError: value outside min_value..max_value
        """
        number = _parse_number(value)
        if number is not None and not self.min_value <= number <= self.max_value:
            raise ValidationError(
                f"'{value}' is outside the range {self.min_value}-{self.max_value}.",
                code='invalid_grade'
            )
        return super().to_number(value)


class ConceptualScheme(Scheme):
    kind = EvaluationSystemType.CONCEPTUAL

    def __init__(self, concepts, decimal_places=None, passing_grade=None):
        super().__init__(decimal_places=decimal_places, passing_grade=passing_grade)
        self.concepts = [
            {
                'symbol': str(c['symbol']),
                'description': c.get('description', ''),
                'min_value': to_decimal(c['min_value']),
                'max_value': to_decimal(c['max_value']),
                'passing': bool(c.get('passing', False)),
            }
            for c in concepts
        ]

    @classmethod
    def from_config(cls, data):
        return cls(
            data.get('concepts') or [],
            decimal_places=data.get('decimal_places'),
            passing_grade=data.get('passing_grade'),
        )

    def lookup_symbol(self, value):
        for concept in self.concepts:
            if concept['symbol'] == str(value).strip():
                return (concept['min_value'] + concept['max_value']) / 2
        return None

    def concept_for(self, number):
        for concept in self.concepts:
            if concept['min_value'] <= number <= concept['max_value']:
                return concept
        return None

    def display(self, number):
        concept = self.concept_for(number)
        if concept is None:
            return self.numeric_display(number)
        return {'value': number, 'display': concept['symbol'], 'passing': concept['passing']}


class DescriptiveScheme(Scheme):
    kind = EvaluationSystemType.DESCRIPTIVE

    def __init__(self, performance_levels, categories=None, decimal_places=None, passing_grade=None):
        super().__init__(decimal_places=decimal_places, passing_grade=passing_grade)
        self.categories = list(categories or [])
        self.performance_levels = [
            {
                'name': str(level['name']),
                'value': to_decimal(level['value']),
                'passing': bool(level.get('passing', False)),
            }
            for level in performance_levels
        ]

    @classmethod
    def from_config(cls, data):
        return cls(
            data.get('performance_levels') or [],
            categories=data.get('categories'),
            decimal_places=data.get('decimal_places'),
            passing_grade=data.get('passing_grade'),
        )

    def lookup_symbol(self, value):
        for level in self.performance_levels:
            if level['name'] == str(value).strip():
                return level['value']
        return None

    def closest_level(self, number):
        closest = None
        for level in self.performance_levels:
            # strict comparison keeps the first level on ties
            if closest is None or abs(level['value'] - number) < abs(closest['value'] - number):
                closest = level
        return closest

    def display(self, number):
        level = self.closest_level(number)
        if level is None:
            return self.numeric_display(number)
        return {'value': number, 'display': level['name'], 'passing': level['passing']}


class CustomScheme(Scheme):
    kind = EvaluationSystemType.CUSTOM

    def __init__(self, data=None):
        data = data or {}
        super().__init__(
            decimal_places=data.get('decimal_places'),
            passing_grade=data.get('passing_grade'),
        )
        self.data = data


SCHEMES = {
    EvaluationSystemType.NUMERIC: NumericScheme,
    EvaluationSystemType.CONCEPTUAL: ConceptualScheme,
    EvaluationSystemType.DESCRIPTIVE: DescriptiveScheme,
}


def build_scheme(system_type, data):
    """
    Build the scheme for a system type and its JSON config.

    A type without usable configuration falls back to the bare numeric check
    against the default passing grade.
    """
    data = data or {}
    scheme_class = SCHEMES.get(system_type)
    if scheme_class is None:
        return CustomScheme(data)
    if system_type == EvaluationSystemType.CONCEPTUAL and not data.get('concepts'):
        return Scheme(decimal_places=data.get('decimal_places'))
    if system_type == EvaluationSystemType.DESCRIPTIVE and not data.get('performance_levels'):
        return Scheme(decimal_places=data.get('decimal_places'))
    return scheme_class.from_config(data)


def validate_config(system_type, data):
    """
    Check that a JSON config can drive a scheme of the given type.

    Raises:
        ValidationError: with the offending key as the error key
    """
    data = data or {}
    if not isinstance(data, dict):
        raise ValidationError({'config': 'Configuration must be an object.'})

    if system_type == EvaluationSystemType.NUMERIC:
        places = _parse_number(data.get('decimal_places', 1))
        if places is None or not 0 <= places <= 2:
            raise ValidationError({'config': 'decimal_places must be between 0 and 2.'})
        low = _parse_number(data.get('min_value', 0))
        high = _parse_number(data.get('max_value', 10))
        if low is None or high is None or low >= high:
            raise ValidationError({'config': 'min_value must be lower than max_value.'})

    elif system_type == EvaluationSystemType.CONCEPTUAL:
        concepts = data.get('concepts')
        if not concepts:
            raise ValidationError({'config': 'A conceptual system needs at least one concept.'})
        for concept in concepts:
            if not concept.get('symbol'):
                raise ValidationError({'config': 'Every concept needs a symbol.'})
            low = _parse_number(concept.get('min_value'))
            high = _parse_number(concept.get('max_value'))
            if low is None or high is None or low > high:
                raise ValidationError(
                    {'config': f"Concept '{concept['symbol']}' has an invalid range."}
                )

    elif system_type == EvaluationSystemType.DESCRIPTIVE:
        levels = data.get('performance_levels')
        if not levels:
            raise ValidationError(
                {'config': 'A descriptive system needs at least one performance level.'}
            )
        for level in levels:
            if not level.get('name') or _parse_number(level.get('value')) is None:
                raise ValidationError(
                    {'config': 'Every performance level needs a name and a numeric value.'}
                )
