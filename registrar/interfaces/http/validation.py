from typing import Type, TypeVar

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

M = TypeVar("M", bound=BaseModel)


def query_model(model: Type[M]):
    """Dependency that validates the whole query string against `model`.

    Errors are re-raised with locations prefixed by "query" so the error
    normalizer reports them as invalid query parameters.
    """
    def dependency(request: Request) -> M:
        try:
            return model.model_validate(dict(request.query_params))
        except ValidationError as e:
            errors = []
            for err in e.errors(include_url=False):
                err = dict(err)
                err["loc"] = ("query", *err.get("loc", ()))
                errors.append(err)
            raise RequestValidationError(errors)

    return dependency

