import json
from decimal import Decimal


class DecimalEncoder(json.JSONEncoder):
    """DynamoDB numbers come back as Decimal. Integral ones stay ints."""
    def default(self, obj):
        if isinstance(obj, Decimal):
            if obj == obj.to_integral_value():
                return int(obj)
            return float(obj)
        return super().default(obj)


def dumps(value):
    return json.dumps(value, cls=DecimalEncoder, separators=(",", ":"))


def loads(raw):
    # parse floats as Decimal so values can be written back to DynamoDB
    return json.loads(raw, parse_float=Decimal)
