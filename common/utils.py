from json import JSONDecoder


def deep_equal(obj1, obj2):
    """
    Deep compare two objects. Return True if they are equal, False otherwise.
    """
    if type(obj1) != type(obj2):
        return False
    if type(obj1) == dict:
        if obj1.keys() != obj2.keys():
            return False
        return all(deep_equal(obj1[key], obj2[key]) for key in obj1)
    if type(obj1) == list:
        if len(obj1) != len(obj2):
            return False
        return all(deep_equal(a, b) for a, b in zip(obj1, obj2))
    return obj1 == obj2


def extract_json_objects(text, decoder=JSONDecoder()):
    """
    Find JSON objects in text, and yield the decoded JSON data

    Only top-level objects and arrays are considered. A match that fails to
    decode is skipped and the scan resumes after its opening bracket.

    The az CLI occasionally writes extension installation notices or
    deprecation warnings to stdout ahead of the command output, so the output
    cannot always be handed to json.loads directly.
    """
    pos = 0
    while True:
        candidates = [i for i in (text.find("{", pos), text.find("[", pos)) if i != -1]
        if not candidates:
            break
        match = min(candidates)
        try:
            result, index = decoder.raw_decode(text[match:])
            yield result
            pos = match + index
        except ValueError:
            pos = match + 1
