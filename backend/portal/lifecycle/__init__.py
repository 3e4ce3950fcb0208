from .advisor import AdvisorState, InteractionAdvisor
from .notifications import NotificationAction, NotificationItem, project
from .prompts import PromptState, ReviewPromptController
from .status import AppointmentStatus, SemanticClass, StatusClassifier, classify
from .surface import NavigationDirective, OutboxSurface, ToastMessage
from .timers import CancelToken, LoopScheduler, Scheduler
from .transitions import TransitionEvent, TransitionWatcher

__all__ = [
    'AdvisorState', 'InteractionAdvisor',
    'NotificationAction', 'NotificationItem', 'project',
    'PromptState', 'ReviewPromptController',
    'AppointmentStatus', 'SemanticClass', 'StatusClassifier', 'classify',
    'NavigationDirective', 'OutboxSurface', 'ToastMessage',
    'CancelToken', 'LoopScheduler', 'Scheduler',
    'TransitionEvent', 'TransitionWatcher',
]
