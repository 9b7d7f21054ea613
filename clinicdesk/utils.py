# clinicdesk/utils.py
import logging
from datetime import date, time

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from .accounts import hash_password
from .identifiers import generate_unique_id
from .models import Doctor, Medicine, Receptionist

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "clinicdesk-demo"


async def create_initial_data(session: AsyncSession):
    result = await session.execute(select(Doctor))
    if result.scalars().first() is not None:
        logger.info("DATABASE: Doctors exist. Skipping demo data.")
        return

    logger.info("DATABASE: Generating demo clinic...")

    doctor = Doctor(
        doctor_id=await generate_unique_id(session, Doctor.doctor_id, "Sarah Smith"),
        name="Sarah Smith",
        clinic_name="Smith Family Clinic",
        mobile_number="9876543210",
        address="12 Park Street",
        email="sarah.smith@example.com",
        password_hash=hash_password(DEMO_PASSWORD),
        accepted_terms=True,
        date_of_birth=date(1980, 4, 12),
        gender="female",
        medical_licence_number="MLN-0001",
        registration_authority="State Medical Council",
        date_of_registration="2008-06-01",
        medical_degree="MBBS, MD",
        government_id="GOV-0001",
        fees=500,
        check_in_time=time(9, 0),
        check_out_time=time(17, 0),
    )
    session.add(doctor)
    await session.flush()

    receptionist = Receptionist(
        receptionist_id=await generate_unique_id(session, Receptionist.receptionist_id, "John Doe"),
        doctor_id=doctor.id,
        name="John Doe",
        mobile_number="9123456780",
        address="34 Lake Road",
        email="john.doe@example.com",
        password_hash=hash_password(DEMO_PASSWORD),
        age=29,
        date_of_joining=date(2023, 1, 2),
        gender="male",
        qualification="B.Com",
    )
    session.add(receptionist)

    session.add_all([
        Medicine(doctor_id=doctor.id, name=name, strength=strength, form=form, category=category, brand=brand)
        for name, strength, form, category, brand in [
            ("Amoxicillin", "500mg", "Capsule", "Antibiotic", "Mox"),
            ("Paracetamol", "650mg", "Tablet", "Analgesic", "Dolo"),
            ("Cetirizine", "10mg", "Tablet", "Antihistamine", "Okacet"),
        ]
    ])
    await session.commit()

    logger.info("DATABASE: Demo clinic ready.")
    logger.info("DATABASE: Log in as %s or %s with password '%s'.", doctor.email, receptionist.email, DEMO_PASSWORD)
