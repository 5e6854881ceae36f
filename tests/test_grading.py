from utils.grading import grade_spelling, is_correct_spelling, letter_diff, spelling_closeness


def test_is_correct_spelling_ignores_case_only():
    assert is_correct_spelling("CaT", "cat")
    assert not is_correct_spelling("cat ", "cat")
    assert not is_correct_spelling("", "cat")


def test_spelling_closeness():
    assert spelling_closeness("Because", "because") == 1.0
    assert 0.8 < spelling_closeness("becuase", "because") < 1.0
    assert spelling_closeness("zzz", "because") < 0.5


def test_grade_spelling_buckets():
    config = {"grading": {"close_threshold": 0.75}}
    assert grade_spelling("because", "Because", config) == "correct"
    assert grade_spelling("becuase", "because", config) == "close"
    assert grade_spelling("cet", "cat", config) == "wrong"
    assert grade_spelling("   ", "cat", config) == "wrong"


def test_letter_diff_marks_substitution():
    diff = letter_diff("cet", "cat")
    assert [(c["char"], c["kind"]) for c in diff["correct"]] == [("c", "correct"), ("a", "wrong"), ("t", "correct")]
    assert [(c["char"], c["kind"]) for c in diff["typed"]] == [("c", "correct"), ("e", "wrong"), ("t", "correct")]


def test_letter_diff_marks_missing_and_extra():
    missing = letter_diff("ct", "cat")
    assert [c["kind"] for c in missing["correct"]] == ["correct", "missing", "correct"]
    extra = letter_diff("catt", "cat")
    assert [c["kind"] for c in extra["typed"]] == ["correct", "correct", "correct", "extra"]
