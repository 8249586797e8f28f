# tests/conftest.py
"""Pytest configuration and fixtures"""
import pytest
import sys
from datetime import date
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from removals.core.calculator.domain import (  # noqa: E402
    Address,
    CalcStep,
    CalculatorState,
    Contact,
    DateFlexibility,
    PropertySize,
    ServiceType,
)


TODAY = date(2026, 3, 2)


# Answers for a complete two-bed home move, keyed by step.
HOME_ANSWERS = {
    CalcStep.SERVICE_TYPE: {"service_type": "home"},
    CalcStep.SIZE: {"property_size": "2bed"},
    CalcStep.VOLUME: {"slider_position": 3},
    CalcStep.RECOMMENDATION: {"accept": True},
    CalcStep.DATE_FLEXIBILITY: {"date_flexibility": "fixed"},
    CalcStep.DATE_PICKER: {"selected_date": "2099-04-15"},
    CalcStep.COMPLICATIONS: {"complications": ["none"]},
    CalcStep.PROPERTY_CHAIN: {"property_chain": False},
    CalcStep.FROM_ADDRESS: {"line": "1 High Street", "city": "Bristol", "postcode": "bs1 4dj"},
    CalcStep.TO_ADDRESS: {"line": "2 Park Road", "city": "Bath", "postcode": "BA1 1AA"},
    CalcStep.EXTRAS: {},
    CalcStep.CONTACT: {
        "first_name": "Sam",
        "last_name": "Taylor",
        "phone": "07700 900123",
        "email": "sam@example.com",
        "terms_accepted": True,
    },
}


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def home_answers():
    return {step: dict(answer) for step, answer in HOME_ANSWERS.items()}


@pytest.fixture
def completed_home_state():
    """Two-bed home move sitting at the QUOTE step."""
    return CalculatorState(
        current_step=CalcStep.QUOTE,
        service_type=ServiceType.HOME,
        property_size=PropertySize.TWO_BED,
        slider_position=3,
        date_flexibility=DateFlexibility.FLEXIBLE,
        selected_date=date(2026, 4, 15),
        complications=[],
        property_chain=False,
        from_address=Address(line="1 High Street", city="Bristol", postcode="BS1 4DJ"),
        to_address=Address(line="2 Park Road", city="Bath", postcode="BA1 1AA"),
        contact=Contact(
            first_name="Sam",
            last_name="Taylor",
            phone="07700900123",
            email="sam@example.com",
            terms_accepted=True,
        ),
    )
