from .application import Application, AppPermission, AppSimulation  # noqa: F401
from .widget import Widget, WidgetField, WidgetUrlParameter  # noqa: F401
