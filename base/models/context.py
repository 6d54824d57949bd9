from dataclasses import dataclass

from base.core.exceptions import ApiError


class ServiceError(ApiError):
    """Raised when a service is missing from the context or registered twice."""

    code: int = 500

    @staticmethod
    def duplicate(name: str, type_before: type, type_after: type) -> "ServiceError":
        return ServiceError(
            f"Internal Server Error: duplicate service '{name}' "
            f"with types {type_before.__name__} -> {type_after.__name__}"
        )

    @staticmethod
    def not_found(type_: type) -> "ServiceError":
        return ServiceError(
            f"Internal Server Error: missing service with type {type_.__name__}"
        )


@dataclass(kw_only=True)
class Service:
    """
    Services implement functionality that can be used in the domain logic,
    allowing stubs to be injected in unit tests.  For example:

    - Network access to remote APIs;
    - Encryption with keys loaded from the environment.
    """

    service_id: str


@dataclass(kw_only=True)
class ServiceContext:
    """
    Provides the services used by the domain logic for the duration of a
    request (or of the whole process, for long-lived callers).
    """

    services: list[Service]

    def add_service(self, service: Service) -> None:
        if existing := next(
            (s for s in self.services if s.service_id == service.service_id),
            None,
        ):
            raise ServiceError.duplicate(
                name=service.service_id,
                type_before=type(existing),
                type_after=type(service),
            )
        self.services.append(service)

    def get_service[S: Service](self, type_: type[S]) -> S | None:
        return next((svc for svc in self.services if isinstance(svc, type_)), None)

    def service[S: Service](self, type_: type[S]) -> S:
        if svc := self.get_service(type_):
            return svc
        raise ServiceError.not_found(type_)
