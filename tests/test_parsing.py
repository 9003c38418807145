from parsing import Malformed, Ok, extract_json, strip_code_fence


def test_fenced_object_is_extracted():
    text = 'Here you go:\n```json\n{"title": "Week 1", "daily_plans": []}\n```\nGood luck!'
    assert extract_json(text) == Ok({"title": "Week 1", "daily_plans": []})


def test_prose_around_array_is_ignored():
    text = 'Sure! [{"front": "Q", "back": "A"}] Hope that helps.'
    outcome = extract_json(text, "array")
    assert isinstance(outcome, Ok)
    assert outcome.value == [{"front": "Q", "back": "A"}]


def test_missing_json_is_malformed_with_raw_text():
    outcome = extract_json("I cannot help with that.", "array")
    assert isinstance(outcome, Malformed)
    assert outcome.raw_text == "I cannot help with that."
    assert outcome.reason == "no JSON array found"


def test_invalid_json_is_malformed():
    outcome = extract_json('{"title": "x",}')
    assert isinstance(outcome, Malformed)
    assert outcome.reason.startswith("invalid JSON")


def test_object_inside_array_is_found():
    outcome = extract_json('[{"a": 1}]', "object")
    assert isinstance(outcome, Ok)
    assert outcome.value == {"a": 1}


def test_array_nested_in_object_is_found():
    assert extract_json('{"cards": [1, 2]}', "array") == Ok([1, 2])


def test_two_separate_objects_are_malformed():
    outcome = extract_json('{"a": 1} and {"b": 2}')
    assert isinstance(outcome, Malformed)
    assert outcome.reason.startswith("invalid JSON")


def test_none_text_is_malformed():
    assert isinstance(extract_json(None), Malformed)


def test_strip_code_fence_without_fence():
    assert strip_code_fence("  plain  ") == "plain"
