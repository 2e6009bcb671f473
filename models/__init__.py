# models/__init__.py
# Model registry

from .school import School
from .admin import Admin
from .super_admin import SuperAdmin
from .fair import Fair
from .category import Category
from .criterion import Criterion
from .evaluator import Evaluator, evaluator_projects
from .project import Project
from .evaluation import Evaluation, ScoreItem
from .access_request import AccessRequest
from .pre_registration import PreRegistration
