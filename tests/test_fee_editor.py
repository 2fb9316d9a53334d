import pytest
from pydantic import ValidationError

from fee_proposal_engine.fee_editor import FeeEditor
from fee_proposal_engine.models.fee import FeeType, HourlyPricing, SimplePricing
from fee_proposal_engine.models.rate import HourlyRate
from fee_proposal_engine.rate_table import RateTable

RATES = RateTable(
    [
        {"discipline_id": 1, "role_id": "engineer", "role_designation": "PE", "rate": 185.0},
        {"discipline_id": 1, "role_id": "engineer", "role_designation": "EIT", "rate": 140.0},
        {"discipline_id": 1, "role_id": "principal", "role_designation": None, "rate": 225.0},
        {"discipline_id": 2, "role_id": "drafter", "role_designation": None, "rate": 95.0},
    ]
)


def editor_with_category(name: str = "General Conditions") -> tuple[FeeEditor, str]:
    editor = FeeEditor(rate_table=RATES)
    category = editor.add_category_at(0)
    editor.rename_category(category.id, name)
    return editor, category.id


def fee_ids(editor: FeeEditor, category_id: str) -> list[str]:
    return [fee.id for fee in editor.get_category(category_id).fees]


def test_add_category_at_position():
    editor = FeeEditor()
    first = editor.add_category_at(0)
    last = editor.add_category_at(5)
    middle = editor.add_category_at(1)

    assert [c.id for c in editor.categories] == [first.id, middle.id, last.id]
    assert first.name == ""
    assert len({first.id, middle.id, last.id}) == 3


def test_blank_names_fall_back_to_placeholders():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    sub = editor.add_subcomponent(cat_id, fee.id)

    assert editor.rename_category(cat_id, "   ").name == "Untitled Category"
    assert editor.rename_fee(cat_id, fee.id, "").name == "Untitled Component"
    assert editor.rename_subcomponent(cat_id, fee.id, sub.id, "\t").name == "Untitled Subcomponent"
    assert editor.rename_fee(cat_id, fee.id, "  Permits ").name == "Permits"


def test_add_fee_after_index():
    editor, cat_id = editor_with_category()
    first = editor.add_fee(cat_id, -1)
    second = editor.add_fee(cat_id, 0)
    between = editor.add_fee(cat_id, 0)

    assert fee_ids(editor, cat_id) == [first.id, between.id, second.id]
    assert first.type is None
    assert editor.add_fee("missing", 0) is None


def test_delete_category_cascades():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    editor.add_subcomponent(cat_id, fee.id)

    assert editor.delete_category(cat_id) is True
    assert editor.categories == ()
    assert editor.get_fee(cat_id, fee.id) is None
    assert editor.delete_category(cat_id) is False


def test_switching_type_resets_other_fields():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)

    editor.set_fee_type(cat_id, fee.id, FeeType.simple)
    editor.update_fee_pricing(cat_id, fee.id, amount=500, quantity=2)
    hourly = editor.set_fee_type(cat_id, fee.id, "hourly")
    assert hourly.pricing == HourlyPricing(hours=0.0)

    editor.select_fee_discipline(cat_id, fee.id, 1)
    editor.update_fee_with_role(cat_id, fee.id, "engineer", "PE")
    simple = editor.set_fee_type(cat_id, fee.id, "simple")
    assert simple.pricing == SimplePricing()


def test_setting_same_type_keeps_fields():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    editor.set_fee_type(cat_id, fee.id, "simple")
    editor.update_fee_pricing(cat_id, fee.id, amount=500, quantity=2, description="City permits")

    again = editor.set_fee_type(cat_id, fee.id, "simple")

    assert again.pricing.amount == 500
    assert again.pricing.description == "City permits"


def test_pricing_fields_must_match_type():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    editor.set_fee_type(cat_id, fee.id, "hourly")

    with pytest.raises(ValidationError):
        editor.update_fee_pricing(cat_id, fee.id, amount=100)


def test_pricing_update_on_untyped_fee_is_noop():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)

    assert editor.update_fee_pricing(cat_id, fee.id, amount=100) is None
    assert editor.get_fee(cat_id, fee.id).pricing is None


def test_adding_subcomponent_makes_fee_a_container():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    editor.rename_fee(cat_id, fee.id, "Permits")
    editor.set_fee_type(cat_id, fee.id, "simple")
    editor.update_fee_pricing(cat_id, fee.id, amount=500, quantity=2)
    assert editor.total() == 1000

    sub = editor.add_subcomponent(cat_id, fee.id)
    editor.rename_subcomponent(cat_id, fee.id, sub.id, "Expediting Fee")
    editor.set_sub_type(cat_id, fee.id, sub.id, "simple")
    editor.update_sub_pricing(cat_id, fee.id, sub.id, amount=300, quantity=1)

    container = editor.get_fee(cat_id, fee.id)
    assert container.type is None
    assert container.is_container
    assert sub.type is None
    assert editor.total() == 300
    assert editor.summary().categories[0].total == 300


def test_container_cannot_be_typed():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    editor.add_subcomponent(cat_id, fee.id)

    assert editor.set_fee_type(cat_id, fee.id, "simple") is None
    assert editor.get_fee(cat_id, fee.id).type is None


def test_role_resolves_hourly_rate():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    editor.set_fee_type(cat_id, fee.id, "hourly")
    editor.select_fee_discipline(cat_id, fee.id, 1)

    updated = editor.update_fee_with_role(cat_id, fee.id, "engineer", "EIT")
    editor.update_fee_pricing(cat_id, fee.id, hours=10)

    assert updated.pricing.hourly_rate == 140.0
    assert updated.pricing.role_id == "engineer"
    assert updated.pricing.role_designation == "EIT"
    assert editor.total() == pytest.approx(1400.0)


def test_unresolvable_role_is_noop():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    editor.set_fee_type(cat_id, fee.id, "hourly")
    editor.select_fee_discipline(cat_id, fee.id, 1)
    editor.update_fee_with_role(cat_id, fee.id, "engineer", "PE")
    before = editor.get_fee(cat_id, fee.id)

    assert editor.update_fee_with_role(cat_id, fee.id, "engineer", "SE") is None
    assert editor.update_fee_with_role(cat_id, fee.id, "drafter", None) is None
    assert editor.get_fee(cat_id, fee.id) == before


def test_role_without_discipline_is_noop():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    editor.set_fee_type(cat_id, fee.id, "hourly")

    assert editor.update_fee_with_role(cat_id, fee.id, "principal", None) is None


def test_selecting_discipline_clears_role_and_rate():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    editor.set_fee_type(cat_id, fee.id, "hourly")
    editor.select_fee_discipline(cat_id, fee.id, 1)
    editor.update_fee_with_role(cat_id, fee.id, "principal", None)

    updated = editor.select_fee_discipline(cat_id, fee.id, 2)

    assert updated.pricing == HourlyPricing(discipline_id=2)


def test_subcomponent_rate_helpers():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    sub = editor.add_subcomponent(cat_id, fee.id)
    editor.set_sub_type(cat_id, fee.id, sub.id, "hourly")
    editor.select_sub_discipline(cat_id, fee.id, sub.id, 2)
    editor.update_sub_with_role(cat_id, fee.id, sub.id, "drafter", None)
    editor.update_sub_pricing(cat_id, fee.id, sub.id, hours=4)
    assert editor.total() == pytest.approx(380.0)

    rate = HourlyRate(discipline_id=1, role_id="principal", role_designation=None, rate=225.0)
    updated = editor.update_sub_with_rate(cat_id, fee.id, sub.id, rate)
    assert updated.pricing.discipline_id == 1
    assert updated.pricing.hours == 4
    assert editor.total() == pytest.approx(900.0)


def test_move_fee_to_own_index_is_unchanged():
    editor, cat_id = editor_with_category()
    for index in range(3):
        editor.add_fee(cat_id, index - 1)
    before = fee_ids(editor, cat_id)

    for index, fee_id in enumerate(before):
        assert editor.move_fee(cat_id, fee_id, cat_id, index) is True
        assert fee_ids(editor, cat_id) == before


def test_move_fee_within_category():
    editor, cat_id = editor_with_category()
    a, b, c = (editor.add_fee(cat_id, i - 1) for i in range(3))

    editor.move_fee(cat_id, a.id, cat_id, 2)

    assert fee_ids(editor, cat_id) == [b.id, c.id, a.id]


def test_move_fee_across_categories():
    editor, source_id = editor_with_category("Design")
    target = editor.add_category_at(1, "Construction")
    a = editor.add_fee(source_id, -1)
    b = editor.add_fee(source_id, 0)
    x = editor.add_fee(target.id, -1)
    editor.set_fee_type(source_id, a.id, "simple")
    editor.update_fee_pricing(source_id, a.id, amount=75)

    assert editor.move_fee(source_id, a.id, target.id, 0) is True

    assert fee_ids(editor, source_id) == [b.id]
    assert fee_ids(editor, target.id) == [a.id, x.id]
    assert editor.get_fee(target.id, a.id).pricing.amount == 75


def test_move_fee_to_unknown_category_is_noop():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)

    assert editor.move_fee(cat_id, fee.id, "missing", 0) is False
    assert fee_ids(editor, cat_id) == [fee.id]


def test_move_subcomponent_between_components():
    editor, cat_id = editor_with_category()
    source = editor.add_fee(cat_id, -1)
    target = editor.add_fee(cat_id, 0)
    s1 = editor.add_subcomponent(cat_id, source.id)
    s2 = editor.add_subcomponent(cat_id, source.id)
    editor.set_fee_type(cat_id, target.id, "simple")
    editor.update_fee_pricing(cat_id, target.id, amount=1000)

    assert editor.move_subcomponent(cat_id, source.id, s1.id, cat_id, target.id, 0) is True

    assert [s.id for s in editor.get_fee(cat_id, source.id).subcomponents] == [s2.id]
    moved_into = editor.get_fee(cat_id, target.id)
    assert [s.id for s in moved_into.subcomponents] == [s1.id]
    assert moved_into.type is None


def test_move_subcomponent_within_component():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    s1, s2, s3 = (editor.add_subcomponent(cat_id, fee.id) for _ in range(3))

    editor.move_subcomponent(cat_id, fee.id, s3.id, cat_id, fee.id, 0)
    assert [s.id for s in editor.get_fee(cat_id, fee.id).subcomponents] == [s3.id, s1.id, s2.id]

    editor.move_subcomponent(cat_id, fee.id, s1.id, cat_id, fee.id, 1)
    assert [s.id for s in editor.get_fee(cat_id, fee.id).subcomponents] == [s3.id, s1.id, s2.id]


def test_move_category():
    editor = FeeEditor()
    a, b, c = (editor.add_category_at(i) for i in range(3))

    assert editor.move_category(0, 2) is True
    assert [cat.id for cat in editor.categories] == [b.id, c.id, a.id]
    assert editor.move_category(7, 0) is False


def test_delete_fee_and_subcomponent():
    editor, cat_id = editor_with_category()
    keep = editor.add_fee(cat_id, -1)
    drop = editor.add_fee(cat_id, 0)
    sub = editor.add_subcomponent(cat_id, keep.id)

    assert editor.delete_fee(cat_id, drop.id) is True
    assert editor.delete_subcomponent(cat_id, keep.id, sub.id) is True
    assert fee_ids(editor, cat_id) == [keep.id]
    assert editor.get_fee(cat_id, keep.id).subcomponents == []
    assert editor.delete_fee(cat_id, drop.id) is False


def test_rate_table_lookups():
    assert RATES.rate_for(1, "engineer", "PE").rate == 185.0
    assert RATES.rate_for(1, "engineer", None) is None
    assert RATES.available_roles(1) == [("engineer", "PE"), ("engineer", "EIT"), ("principal", None)]
    assert [r.rate for r in RATES.for_discipline(2)] == [95.0]


def test_apply_rate_row_to_fee():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    container = editor.add_fee(cat_id, 0)
    editor.add_subcomponent(cat_id, container.id)
    rate = RATES.rate_for(1, "principal", None)

    updated = editor.update_fee_with_rate(cat_id, fee.id, rate)

    assert updated.pricing == HourlyPricing(discipline_id=1, role_id="principal", hourly_rate=225.0)
    assert editor.update_fee_with_rate(cat_id, container.id, rate) is None


def test_hourly_rate_editable_by_wire_name_or_field_name():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    sub_parent = editor.add_fee(cat_id, 0)
    sub = editor.add_subcomponent(cat_id, sub_parent.id)
    editor.set_fee_type(cat_id, fee.id, "hourly")
    editor.set_sub_type(cat_id, sub_parent.id, sub.id, "hourly")
    editor.select_fee_discipline(cat_id, fee.id, 1)
    editor.update_fee_with_role(cat_id, fee.id, "engineer", "PE")

    by_alias = editor.update_fee_pricing(cat_id, fee.id, hourlyRate=250.0, hours=2)
    assert by_alias.pricing.hourly_rate == 250.0
    assert by_alias.pricing.role_id == "engineer"

    by_name = editor.update_fee_pricing(cat_id, fee.id, hourly_rate=300.0)
    assert by_name.pricing.hourly_rate == 300.0
    assert by_name.pricing.hours == 2

    sub_updated = editor.update_sub_pricing(cat_id, sub_parent.id, sub.id, hourlyRate=80.0, hours=1.5)
    assert sub_updated.pricing.hourly_rate == 80.0
    assert editor.total() == pytest.approx(600.0 + 120.0)


def test_pricing_keys_named_like_arguments_are_rejected():
    editor, cat_id = editor_with_category()
    fee = editor.add_fee(cat_id, -1)
    editor.set_fee_type(cat_id, fee.id, "simple")

    with pytest.raises(ValidationError):
        editor.update_fee_pricing(cat_id, fee.id, **{"category_id": "other", "amount": 5})
