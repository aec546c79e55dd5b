import pytest

from backend.core.exceptions import InvalidInputError, NoCompatibleResourceError, NotFoundError
from backend.services.compatibility import CompatibilityResolver, validate_patient_gender


def test_compatible_rooms_filter_by_certification_and_gender(db, clinic) -> None:
    branch = clinic.branch()
    other_branch = clinic.branch(name='North')
    treatment = clinic.treatment()
    other_treatment = clinic.treatment(name='Massage')
    unisex = clinic.room(branch, name='Unisex', gender='Unisex', treatments=[treatment])
    clinic.room(branch, name='Male only', gender='Male', treatments=[treatment])
    female = clinic.room(branch, name='Female only', gender='Female', treatments=[treatment])
    clinic.room(branch, name='Uncertified', gender='Unisex', treatments=[other_treatment])
    clinic.room(other_branch, name='Elsewhere', gender='Unisex', treatments=[treatment])

    rooms = CompatibilityResolver.for_session(db).compatible_rooms(branch.id, treatment.id, 'Female')

    assert [room.id for room in rooms] == [unisex.id, female.id]


def test_compatible_staff_ignores_gender(db, clinic) -> None:
    branch = clinic.branch()
    treatment = clinic.treatment()
    first = clinic.staff(branch, name='A', treatments=[treatment])
    clinic.staff(branch, name='B')
    third = clinic.staff(branch, name='C', treatments=[treatment])

    staff = CompatibilityResolver.for_session(db).compatible_staff(branch.id, treatment.id)

    assert [member.id for member in staff] == [first.id, third.id]


def test_missing_branch_or_treatment_raises_not_found(db, clinic) -> None:
    branch = clinic.branch()
    treatment = clinic.treatment()
    resolver = CompatibilityResolver.for_session(db)

    with pytest.raises(NotFoundError) as exception_info:
        resolver.compatible_rooms(999, treatment.id, 'Male')
    assert exception_info.value.message == 'Branch not found'

    with pytest.raises(NotFoundError) as exception_info:
        resolver.compatible_staff(branch.id, 999)
    assert exception_info.value.message == 'Treatment not found'


def test_empty_result_sets_raise_no_compatible_resource(db, clinic) -> None:
    branch = clinic.branch()
    treatment = clinic.treatment()
    clinic.room(branch, gender='Male', treatments=[treatment])
    resolver = CompatibilityResolver.for_session(db)

    with pytest.raises(NoCompatibleResourceError):
        resolver.compatible_rooms(branch.id, treatment.id, 'Female')

    with pytest.raises(NoCompatibleResourceError):
        resolver.compatible_staff(branch.id, treatment.id)


def test_certified_staff_may_be_empty(db, clinic) -> None:
    branch = clinic.branch()
    treatment = clinic.treatment()

    assert CompatibilityResolver.for_session(db).certified_staff(branch.id, treatment.id) == []


@pytest.mark.parametrize(('value', 'expected'), [('male', 'Male'), (' Female ', 'Female')])
def test_validate_patient_gender_normalizes(value: str, expected: str) -> None:
    assert validate_patient_gender(value) == expected


@pytest.mark.parametrize('value', ['Unisex', 'other', '', None])
def test_validate_patient_gender_rejects_unsupported_values(value) -> None:
    with pytest.raises(InvalidInputError):
        validate_patient_gender(value)
