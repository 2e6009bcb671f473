# errors.py
# Domain errors raised by the evaluation and onboarding logic.
# Route handlers catch them, flash a message and redirect.


class EvaluationError(Exception):
    """Base class for every recoverable domain error."""

    message = 'The operation could not be completed.'

    def __str__(self):
        return self.message


class NotAuthorized(EvaluationError):
    message = 'Project not found, not assigned to you, or outside your school/fair.'


class AlreadyFinalized(EvaluationError):
    message = 'Your evaluations have already been finalized.'


class InvalidScore(EvaluationError):
    def __init__(self, criterion_name):
        super().__init__(criterion_name)
        self.criterion_name = criterion_name

    def __str__(self):
        return (f'Invalid score for criterion "{self.criterion_name}". '
                f'Scores must be whole numbers between 5 and 10.')


class IncompleteProjects(EvaluationError):
    def __init__(self, titles):
        super().__init__(titles)
        self.titles = list(titles)

    def __str__(self):
        return ('You must score ALL criteria of ALL assigned projects before finalizing. '
                f'Pending projects: {", ".join(self.titles)}.')


class PersistenceError(EvaluationError):
    message = 'Could not save your changes. Please try again.'


class DuplicateRequest(EvaluationError):
    message = 'There is already a pending request with this e-mail or school name.'


class RequestNotFound(EvaluationError):
    message = 'Access request not found.'


class InvalidTransition(EvaluationError):
    def __init__(self, status):
        super().__init__(status)
        self.status = status

    def __str__(self):
        return f'This request has already been processed (status: {self.status}).'


class SchoolConflict(EvaluationError):
    message = 'A school with this name or CNPJ, or its admin e-mail, is already registered.'


class FairClosed(EvaluationError):
    message = 'This fair is not accepting pre-registrations.'


class DuplicatePreRegistration(EvaluationError):
    message = 'You have already sent a pre-registration for this fair.'


class EvaluatorExists(EvaluationError):
    message = 'There is already an evaluator with this e-mail in this fair.'
