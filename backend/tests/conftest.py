"""
Pytest fixtures for workshop backend tests.

Provides test database setup, two isolated tenants, authenticated users,
a job card with an open estimate and a stocked inventory item.
"""

import pytest
from workshop import create_app
from workshop.extensions import db, rate_limiter
from workshop.models import Estimate, JobCard, Tenant, User
from workshop.services import session_service
from workshop.services.inventory_service import create_item
from workshop.services.task_service import create_task


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'COMMIT_RETRY_ATTEMPTS': 2,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Create Tenant A (first workshop)."""
    tenant = Tenant(name="Tenant A - Northside Garage", code="NORTH", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Create Tenant B (second workshop)."""
    tenant = Tenant(name="Tenant B - Southside Motors", code="SOUTH", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def user_a(db_session, tenant_a):
    user = User(tenant_id=tenant_a.id, username="mechanic_a", email="a@northside.test")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def user_b(db_session, tenant_b):
    user = User(tenant_id=tenant_b.id, username="mechanic_b", email="b@southside.test")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def token_a(user_a):
    _, token = session_service.create_session(user_a.id)
    return token


@pytest.fixture(scope='function')
def token_b(user_b):
    _, token = session_service.create_session(user_b.id)
    return token


def make_job(db_session, tenant_id: int, job_number: str, with_estimate: bool = True) -> JobCard:
    job = JobCard(tenant_id=tenant_id, job_number=job_number)
    db_session.add(job)
    db_session.flush()
    if with_estimate:
        db_session.add(Estimate(tenant_id=tenant_id, jobcard_id=job.id))
    db_session.commit()
    return job


@pytest.fixture(scope='function')
def job_a(db_session, tenant_a):
    """Job card in Tenant A with an empty estimate."""
    return make_job(db_session, tenant_a.id, "JC-1001")


@pytest.fixture(scope='function')
def job_b(db_session, tenant_b):
    return make_job(db_session, tenant_b.id, "JC-2001")


@pytest.fixture(scope='function')
def item_a(db_session, tenant_a):
    """Brake pad set: 10 on hand, none reserved, sells for 25.00."""
    return create_item(tenant_a.id, {
        "sku": "BP-100",
        "name": "Brake pad set",
        "stockOnHand": 10,
        "unitCostCents": 1500,
        "sellPriceCents": 2500,
    })


@pytest.fixture(scope='function')
def make_task(tenant_a, user_a, job_a):
    """Factory for DRAFT tasks on job_a."""
    def _make(**payload):
        payload.setdefault("taskName", "Inspect brakes")
        payload.setdefault("actionType", "NO_CHANGE")
        return create_task(tenant_a.id, job_a.id, payload, user_a.id)
    return _make


@pytest.fixture(scope='function')
def replacement_task(make_task, item_a):
    """DRAFT REPLACED task for 5 units of item_a."""
    return make_task(
        taskName="Replace front pads",
        actionType="REPLACED",
        inventoryItemId=item_a.id,
        qty=5,
        laborCostSnapshotCents=3000,
    )
