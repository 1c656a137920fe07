from decimal import Decimal

import pytest

from backend.core.errors import NotFound
from backend.routes.doctor_directory_routes import get_doctor, list_doctors


@pytest.fixture(autouse=True)
def skip_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('backend.routes.doctor_directory_routes.ensure_database_ready', lambda: None)


@pytest.fixture
def directory(db, make_doctor, make_clinic, assign_clinic):
    house = make_doctor()
    strange = make_doctor(email='strange@clinic.test', first_name='Stephen', last_name='Strange')
    retired = make_doctor(email='retired@clinic.test', first_name='Gregory', last_name='Retired', is_active=False)
    smouha = make_clinic()
    zamalek = make_clinic(name='Zamalek Clinic', city='Cairo')
    assign_clinic(house, smouha)
    assign_clinic(strange, zamalek)
    assign_clinic(retired, smouha)
    return {'house': house, 'strange': strange, 'retired': retired, 'smouha': smouha, 'zamalek': zamalek}


def _search(db, **filters):
    params = {'search': None, 'city': None, 'area': None, 'clinic_id': None, 'limit': 20, 'offset': 0}
    params.update(filters)
    return [doctor.name for doctor in list_doctors(db=db, **params)]


def test_list_doctors_returns_active_doctors_with_clinics(db, directory) -> None:
    doctors = list_doctors(search=None, city=None, area=None, clinic_id=None, limit=20, offset=0, db=db)

    assert [doctor.name for doctor in doctors] == ['Dr. Gregory House', 'Dr. Stephen Strange']
    assert doctors[0].years_of_experience == 12
    assert doctors[0].clinics[0].name == 'Smouha Clinic'
    assert doctors[0].clinics[0].consultation_fee == Decimal('300')


def test_list_doctors_filters_by_name_and_location(db, directory) -> None:
    assert _search(db, search='gREG') == ['Dr. Gregory House']
    assert _search(db, search='strange') == ['Dr. Stephen Strange']
    assert _search(db, city='cairo') == ['Dr. Stephen Strange']
    assert _search(db, area='Smouha') == ['Dr. Gregory House', 'Dr. Stephen Strange']
    assert _search(db, clinic_id=directory['smouha'].id) == ['Dr. Gregory House']
    assert _search(db, city='Alexandria', clinic_id=directory['zamalek'].id) == []


def test_list_doctors_pages_results(db, directory) -> None:
    assert _search(db, limit=1) == ['Dr. Gregory House']
    assert _search(db, limit=1, offset=1) == ['Dr. Stephen Strange']


def test_get_doctor_hides_inactive_doctors(db, directory) -> None:
    assert get_doctor(doctor_id=directory['house'].id, db=db).name == 'Dr. Gregory House'

    with pytest.raises(NotFound) as exception_info:
        get_doctor(doctor_id=directory['retired'].id, db=db)
    assert exception_info.value.message == 'Doctor not found'

    with pytest.raises(NotFound):
        get_doctor(doctor_id=999, db=db)
