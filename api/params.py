# api/params.py
def query_value(params, *names):
    """First non-empty value among camelCase/snake_case aliases"""
    for name in names:
        value = params.get(name)
        if value not in (None, ''):
            return value
    return None
