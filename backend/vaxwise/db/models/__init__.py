# backend/vaxwise/db/models/__init__.py

from vaxwise.db.models.user import User
from vaxwise.db.models.animal import Animal
from vaxwise.db.models.vaccine import Vaccine
from vaxwise.db.models.vaccination import Vaccination
from vaxwise.db.models.notification import ChannelDelivery, Notification
