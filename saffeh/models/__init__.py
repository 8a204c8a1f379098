# Saffeh client: local storage models
# Import all models here for SQLAlchemy discovery

from saffeh.models.credential import StoredCredential   # noqa
