from dishka import Provider as DishkaProvider

from imgsync.util.di.scope import Scope


class Provider(DishkaProvider):
    """Base for all imgsync DI providers; factories default to the APP scope."""

    scope = Scope.APP
