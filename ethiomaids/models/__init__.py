"""
SQLAlchemy Models Package

This package contains all database models organized by domain:
- Core Models: Profile, AgencyTeamMember
- Marketplace: Job, JobApplication, BookingRequest, Review, ReviewHelpfulVote, Favorite
- Billing: Payout, Subscription, Payment
- Communication: Message, Notification, WhatsAppMessage, MaidBooking
- Scheduling: MaidAvailability
- System: PlatformSettings, SystemSetting
"""

# Core Models
from ethiomaids.models.profile import Profile, AgencyTeamMember

# Marketplace Models
from ethiomaids.models.job import Job, JobApplication
from ethiomaids.models.booking import BookingRequest
from ethiomaids.models.review import Review, ReviewHelpfulVote
from ethiomaids.models.favorite import Favorite

# Billing Models
from ethiomaids.models.payout import Payout
from ethiomaids.models.subscription import Subscription, Payment

# Communication Models
from ethiomaids.models.message import Message
from ethiomaids.models.notification import Notification
from ethiomaids.models.whatsapp import WhatsAppMessage, MaidBooking

# Scheduling Models
from ethiomaids.models.availability import MaidAvailability

# System Models
from ethiomaids.models.settings import PlatformSettings, SystemSetting

__all__ = [
    # Core Models
    'Profile',
    'AgencyTeamMember',
    # Marketplace
    'Job',
    'JobApplication',
    'BookingRequest',
    'Review',
    'ReviewHelpfulVote',
    'Favorite',
    # Billing
    'Payout',
    'Subscription',
    'Payment',
    # Communication
    'Message',
    'Notification',
    'WhatsAppMessage',
    'MaidBooking',
    # Scheduling
    'MaidAvailability',
    # System
    'PlatformSettings',
    'SystemSetting',
]
