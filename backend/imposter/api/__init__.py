from imposter.errors import ValidationError


def int_arg(value, field):
    """Coerce a JSON/query value to int, rejecting booleans and junk."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f'{field} is required and must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer')
