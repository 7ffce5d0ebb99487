# TireTrack: Database Models
# Import all models here for SQLAlchemy discovery

from tiretrack.models.owner import Owner                   # noqa
from tiretrack.models.vehicle import Vehicle               # noqa
from tiretrack.models.branch import Branch                 # noqa
from tiretrack.models.service_visit import ServiceVisit    # noqa
from tiretrack.models.tire_change import TireChange        # noqa
from tiretrack.models.tire_switch import TireSwitch        # noqa
from tiretrack.models.oil_change import OilChange          # noqa
from tiretrack.models.admin_user import AdminUser          # noqa
from tiretrack.models.auth_session import AuthSession      # noqa
from tiretrack.models.otp_token import OtpToken            # noqa
