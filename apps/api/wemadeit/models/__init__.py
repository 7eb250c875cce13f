from wemadeit.auth.models import User, UserSession
from wemadeit.crm.models import (
	CRMContact,
	CRMDeal,
	CRMInteraction,
	CRMOrganization,
	CRMPayment,
	CRMPipeline,
	CRMPipelineStage,
	CRMProject,
	CRMQuotation,
	CRMQuotationItem,
	CRMTask,
)

__all__ = [
	"User",
	"UserSession",
	"CRMOrganization",
	"CRMContact",
	"CRMPipeline",
	"CRMPipelineStage",
	"CRMDeal",
	"CRMPayment",
	"CRMProject",
	"CRMTask",
	"CRMQuotation",
	"CRMQuotationItem",
	"CRMInteraction",
]
