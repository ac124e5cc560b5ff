from commerce_sync.matcher import match, split_duplicates
from commerce_sync.models import ExistingEntity, ProductTypeDraft


def draft(key, name="Shoes"):
    return ProductTypeDraft(key=key, name=name, description="desc")


def test_partitions_into_create_and_update():
    existing = ExistingEntity("pt-1", 3, "b", draft("b", "Old"))
    result = match([draft("a"), draft("b")], {"b": existing})

    assert [d.key for d in result.to_create] == ["a"]
    assert result.to_update == [(existing, draft("b"))]
    assert result.duplicates == []


def test_first_draft_with_a_key_wins():
    first = draft("a", "First")
    second = draft("a", "Second")
    result = match([first, second], {})

    assert result.to_create == [first]
    assert result.duplicates == [second]


def test_blank_keys_are_reported_not_matched():
    result = match([draft(""), draft(None), draft("a")], {})

    assert len(result.blank_keys) == 2
    assert [d.key for d in result.to_create] == ["a"]


def test_each_key_appears_in_exactly_one_bucket():
    drafts = [draft("a"), draft("b"), draft("a"), draft("c")]
    existing = {"c": ExistingEntity("pt-3", 1, "c", draft("c"))}
    result = match(drafts, existing)

    keys = [d.key for d in result.to_create] + [d.key for _, d in result.to_update]
    assert sorted(keys) == ["a", "b", "c"]
    assert len(result.duplicates) == 1


def test_split_duplicates_keeps_first_and_blank_keys():
    first = draft("a", "First")
    blank = draft("")
    unique, duplicates = split_duplicates([first, blank, draft("a", "Second"), draft("")])

    assert unique == [first, blank, draft("")]
    assert duplicates == [draft("a", "Second")]
