from typing import Any, Self

from pydantic import BaseModel, Field

from sdw.errors import SdwError
from sdw.types import ResultCode


class UnitFileChange(BaseModel):
    """One entry of the change list returned by Enable/DisableUnitFiles.
    """
    model_config = {'frozen': True}

    change_type: str = Field(..., description='Change type (symlink, unlink)')
    file_name: str = Field(..., description='Affected file')
    destination: str = Field('', description='Symlink destination')

    @classmethod
    def from_dbus(cls, change: list[Any] | tuple[Any, ...]) -> Self:
        """Build a change from an a(sss) element.
        """
        if len(change) != 3:
            raise ValueError(
                f'Expected 3 fields in unit file change, got {len(change)}'
            )
        return cls(
            change_type=change[0],
            file_name=change[1],
            destination=change[2],
        )


class JobRemovedEvent(BaseModel):
    """A JobRemoved signal emitted by the manager.

    The manager broadcasts it for every finished job on the system.
    """
    model_config = {'frozen': True}

    job_id: int = Field(..., ge=0, description='Numeric job id')
    job_path: str = Field(..., description='Job object path')
    unit: str = Field(..., description='Unit the job belonged to')
    result: str = Field(..., description='Textual job result')

    @classmethod
    def from_signal_body(cls, body: list[Any]) -> Self:
        """Parse the (uoss) body of a JobRemoved signal.
        """
        if len(body) != 4:
            raise ValueError(
                f'Expected 4 fields in JobRemoved signal, got {len(body)}'
            )
        return cls(
            job_id=body[0],
            job_path=body[1],
            unit=body[2],
            result=body[3],
        )


class OperationResult(BaseModel):
    """Outcome of a public wrapper operation.

    Negative codes are errors, zero is plain success and positive codes
    categorize a queried state.
    """
    model_config = {'frozen': True, 'arbitrary_types_allowed': True}

    code: int = Field(..., description='Result or state code')
    message: str = Field('', description='Failure description')
    value: str | int | list[UnitFileChange] | None = Field(
        None,
        description='Value produced by the operation',
    )

    @property
    def ok(self) -> bool:
        return self.code >= 0

    @classmethod
    def success(
        cls,
        value: str | int | list[UnitFileChange] | None = None,
        code: int = ResultCode.SUCCESS,
    ) -> Self:
        """Create a successful result.
        """
        return cls(code=int(code), value=value)

    @classmethod
    def failure(cls, code: ResultCode, message: str = '') -> Self:
        """Create a failed result.
        """
        return cls(code=int(code), message=message)

    @classmethod
    def from_error(cls, error: SdwError) -> Self:
        """Create a failed result from an internal error.
        """
        return cls.failure(error.code, error.message)
