import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from callflow.models.appointment import AppointmentDetails


@pytest.fixture
def details() -> AppointmentDetails:
    return AppointmentDetails(
        client_name="Jordan Avery",
        company_name="Riverside Dental",
        appointment_date="April 15, 2025",
        appointment_time="2:30 PM",
        alt_date_1="April 16, 2025",
        alt_time_1="10:00 AM",
        alt_date_2="April 17, 2025",
        alt_time_2="3:00 PM",
    )


@pytest.fixture
def bare_details() -> AppointmentDetails:
    """Appointment with no pre-arranged alternatives."""
    return AppointmentDetails(
        client_name="Sam Lee",
        appointment_date="May 2, 2025",
        appointment_time="9:00 AM",
    )
