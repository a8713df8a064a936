"""Seed data for development and testing."""

from datetime import date, timedelta

from sqlalchemy.orm import Session

from aerolog_core.models import Aircraft, CrewMember, CrewRole, Operator, RegulatoryTier


def seed_operators(db: Session) -> Operator:
    """Seed the demo operator."""
    operator = db.query(Operator).filter(Operator.name == "Demo Air Taxi").first()
    if not operator:
        operator = Operator(name="Demo Air Taxi", notification_group="ops-demo-air-taxi")
        db.add(operator)
        db.commit()
        print(f"✓ Created operator: {operator.name} (ID: {operator.id})")
    else:
        print(f"✓ Operator already exists: {operator.name}")
    return operator


def seed_aircraft(db: Session, operator: Operator):
    """Seed one aircraft per regulatory tier."""
    fleet = [
        ("PR-AAA", RegulatoryTier.A),
        ("PR-BBB", RegulatoryTier.B),
        ("PR-CCC", RegulatoryTier.C),
    ]
    for registration, tier in fleet:
        aircraft = db.query(Aircraft).filter(Aircraft.registration == registration).first()
        if aircraft:
            print(f"✓ Aircraft already exists: {registration}")
            continue
        db.add(Aircraft(registration=registration, operator_id=operator.id, regulatory_tier=tier))
        print(f"✓ Created aircraft: {registration} (tier {tier.value})")
    db.commit()


def seed_crew(db: Session, operator: Operator):
    """Seed a pilot and an operator signatory."""
    crew = [
        ("pilot.demo", "Demo Pilot", "PLT-0001", CrewRole.PILOT),
        ("signatory.demo", "Demo Signatory", None, CrewRole.OPERATOR_SIGNATORY),
    ]
    for actor_id, full_name, license_code, role in crew:
        member = db.query(CrewMember).filter(CrewMember.actor_id == actor_id).first()
        if member:
            print(f"✓ Crew member already exists: {actor_id}")
            continue
        db.add(
            CrewMember(
                actor_id=actor_id,
                full_name=full_name,
                license_code=license_code,
                operator_id=operator.id,
                role=role,
                license_valid_until=date.today() + timedelta(days=365) if license_code else None,
            )
        )
        print(f"✓ Created crew member: {actor_id} ({role.value})")
    db.commit()


def seed_all(db: Session):
    """Seed all initial data."""
    operator = seed_operators(db)
    seed_aircraft(db, operator)
    seed_crew(db, operator)
