from .base import STEP_TYPES, Step, StepContext, StepParams, register_step
from .configuration import (
    ChangeConfigurationStateStep,
    CreateConfigurationStep,
    DeleteConfigurationStep,
    MergeTemplateStep,
)
from .container import (
    ChangeContainerStateStep,
    ChangeVMContainerHostStatusStep,
    CreateContainerStep,
    DeleteContainerStep,
    GetContainerMetadataStep,
)
from .network import ConnectToVPNStep, NetworkConnectStep
from .project import AddConfigurationToProjectStep, AddTemplateToProjectStep
from .publish import (
    CreatePublishedServiceStep,
    CreatePublishURLStep,
    ListPublishedServiceStep,
    ListPublishedURLStep,
)
from .template import CreateTemplateStep

__all__ = [
    "STEP_TYPES",
    "Step",
    "StepContext",
    "StepParams",
    "register_step",
    "AddConfigurationToProjectStep",
    "AddTemplateToProjectStep",
    "ChangeConfigurationStateStep",
    "ChangeContainerStateStep",
    "ChangeVMContainerHostStatusStep",
    "ConnectToVPNStep",
    "CreateConfigurationStep",
    "CreateContainerStep",
    "CreatePublishedServiceStep",
    "CreatePublishURLStep",
    "CreateTemplateStep",
    "DeleteConfigurationStep",
    "DeleteContainerStep",
    "GetContainerMetadataStep",
    "ListPublishedServiceStep",
    "ListPublishedURLStep",
    "MergeTemplateStep",
    "NetworkConnectStep",
]
