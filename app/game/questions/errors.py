class QuestionFlagError(Exception):
    pass


class QuestionNotFoundError(QuestionFlagError):
    pass
