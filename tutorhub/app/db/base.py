from tutorhub.app.db.base_class import Base

# Import models to register metadata for Base.metadata.create_all in tests
from tutorhub.app.models.user import User  # noqa: F401
from tutorhub.app.models.session import Session  # noqa: F401
from tutorhub.app.models.booking import Booking  # noqa: F401
from tutorhub.app.models.payment import Payment  # noqa: F401
from tutorhub.app.models.notification import Notification  # noqa: F401
from tutorhub.app.models.review import Review  # noqa: F401
from tutorhub.app.models.webhook_event import ProcessedWebhookEvent  # noqa: F401
