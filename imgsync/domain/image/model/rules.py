"""Reference rewrite rules applied once after discovery."""

from pydantic import ConfigDict, Field

from imgsync.domain.shared.model.value import ValueObject


class RefRule(ValueObject):
    """Matches every image whose canonical reference starts with `ref`."""

    ref: str


class ModifyRule(ValueObject):
    """Rewrites the `from` prefix of matching references to `to`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: str = Field(alias="from")
    to: str


class ImageRules(ValueObject):
    """Per-chart image rules."""

    exclude: tuple[RefRule, ...] = ()
    exclude_copacetic: tuple[RefRule, ...] = ()  # never patch, push as-is
    modify: tuple[ModifyRule, ...] = ()


class Mirror(ValueObject):
    """Pull images of `registry` from `mirror` instead."""

    registry: str
    mirror: str
