from app.models.user import User
from app.models.subscription import Subscription
from app.models.donation import Donation
from app.models.points import PointsTransaction
from app.models.gift_order import GiftOrder
from app.models.chat import ChatMessage
from app.models.payments import PaymentCapture, PaymentWebhookEvent
