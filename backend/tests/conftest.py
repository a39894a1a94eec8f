import os, sys, pytest
# Ensure backend directory is on path so 'operate' and 'tests' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from operate import create_app, get_db
from operate.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import operate.models.organization  # noqa: F401
import operate.models.audit  # noqa: F401

TEST_CONFIG = {
    'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
    'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-32b',
    'LOG_LEVEL': 'DEBUG',
}


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    app = create_app(dict(TEST_CONFIG))
    ctx = app.app_context()
    ctx.push()
    engine = get_db().get_bind()
    Base.metadata.create_all(engine)
    yield app
    ctx.pop()


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def db(app_instance):
    session = get_db()
    yield session
    # leave no failed transaction behind for the next test
    session.rollback()
