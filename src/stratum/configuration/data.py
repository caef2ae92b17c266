"""
Serialisable snapshots of layer models and configurations.

These pydantic models carry the state of a Configuration across process
boundaries (for example to a worker that needs the same effective values).
``ConfigurationData.model_dump_json()`` produces plain JSON.
"""

from __future__ import annotations

import typing as _typing

import pydantic as _pydantic

import stratum.model as model
import stratum.workspace as workspace


class OverrideData(_pydantic.BaseModel):
    """One override fragment."""

    identifiers: list[str]
    contents: dict[str, _typing.Any] = _pydantic.Field(default_factory=dict)


class LayerModelData(_pydantic.BaseModel):
    """One layer model: contents, key index and fragments."""

    contents: dict[str, _typing.Any] = _pydantic.Field(default_factory=dict)
    keys: list[str] = _pydantic.Field(default_factory=list)
    overrides: list[OverrideData] = _pydantic.Field(default_factory=list)

    @classmethod
    def from_model(cls, layer: model.LayerModel) -> LayerModelData:
        return cls(
            contents=layer.get_value(),
            keys=layer.keys,
            overrides=[
                OverrideData(
                    identifiers=list(fragment.identifiers),
                    contents=layer.get_override_contents(fragment.identifiers) or {},
                )
                for fragment in layer.overrides
            ],
        )

    def to_model(self) -> model.LayerModel:
        return model.LayerModel(
            self.contents,
            self.keys,
            [
                model.OverrideFragment(tuple(data.identifiers), data.contents)
                for data in self.overrides
            ],
        )


class WorkspaceData(_pydantic.BaseModel):
    """Workspace topology."""

    folders: list[str] = _pydantic.Field(default_factory=list)
    configuration: str | None = None
    case_sensitive: bool | None = None

    @classmethod
    def from_workspace(cls, topology: workspace.Workspace) -> WorkspaceData:
        return cls(
            folders=topology.folders,
            configuration=topology.configuration,
            case_sensitive=topology.case_sensitive,
        )

    def to_workspace(self) -> workspace.Workspace:
        return workspace.Workspace(
            self.folders, self.configuration, case_sensitive=self.case_sensitive
        )


class ConfigurationData(_pydantic.BaseModel):
    """Every layer of a Configuration plus its topology."""

    defaults: LayerModelData = _pydantic.Field(default_factory=LayerModelData)
    organization: LayerModelData = _pydantic.Field(default_factory=LayerModelData)
    user: LayerModelData = _pydantic.Field(default_factory=LayerModelData)
    workspace: LayerModelData = _pydantic.Field(default_factory=LayerModelData)
    folders: dict[str, LayerModelData] = _pydantic.Field(default_factory=dict)
    memory: LayerModelData = _pydantic.Field(default_factory=LayerModelData)
    memory_by_resource: dict[str, LayerModelData] = _pydantic.Field(default_factory=dict)
    topology: WorkspaceData = _pydantic.Field(default_factory=WorkspaceData)
