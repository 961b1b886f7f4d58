"""Tests for binding and type descriptors."""

from uuid import UUID

import pytest

from discovery_manager.discovery.models import (
    BindingArguments,
    BindingCriteria,
    BindingDescriptor,
    BindingParameterDescriptor,
    BindingState,
    BindingType,
    BindingTypeDescriptor,
    BindingTypeState,
    ViolationCode,
)
from discovery_manager.exceptions import (
    AlreadyLoadedError,
    NoSuchParameterError,
    NotLoadedError,
    ValidationError,
)
from discovery_manager.packages.models import InstallInfo


class TestBindingParameterDescriptor:
    """Tests for BindingParameterDescriptor."""

    def test_defaults(self) -> None:
        """Should be optional without a default."""
        parameter = BindingParameterDescriptor("locale")

        assert parameter.required is False
        assert parameter.default is None

    @pytest.mark.parametrize("name", ["", "Locale", "1st", "my_param", "a:b"])
    def test_rejects_invalid_names(self, name: str) -> None:
        with pytest.raises(ValidationError):
            BindingParameterDescriptor(name)

    def test_rejects_non_scalar_default(self) -> None:
        with pytest.raises(ValidationError):
            BindingParameterDescriptor("param", default=["a"])

    def test_required_parameter_cannot_have_default(self) -> None:
        with pytest.raises(ValidationError):
            BindingParameterDescriptor("param", required=True, default="x")


class TestBindingTypeDescriptor:
    """Tests for BindingTypeDescriptor."""

    @pytest.mark.parametrize("name", ["type", "My/type", "my/type/x", "my/Type", "/type", ""])
    def test_rejects_invalid_names(self, name: str) -> None:
        """Should require the vendor/name format."""
        with pytest.raises(ValidationError):
            BindingTypeDescriptor(name)

    def test_parameter_defaults(self) -> None:
        """Should expose the defaults of optional parameters only."""
        descriptor = BindingTypeDescriptor(
            "my/type",
            parameters=[
                BindingParameterDescriptor("required", required=True),
                BindingParameterDescriptor("optional", default=42),
            ],
        )

        assert descriptor.get_parameter_values() == {"optional": 42}
        assert descriptor.has_required_parameters()
        assert descriptor.has_parameter("optional")
        assert not descriptor.has_parameter("missing")

    def test_get_unknown_parameter_raises(self) -> None:
        with pytest.raises(NoSuchParameterError):
            BindingTypeDescriptor("my/type").get_parameter("missing")

    def test_to_binding_type(self, sample_type: BindingTypeDescriptor) -> None:
        binding_type = sample_type.to_binding_type()

        assert isinstance(binding_type, BindingType)
        assert binding_type.name == "my/type"
        assert binding_type.get_parameter_values() == {"param": "default"}

    def test_lifecycle(self, sample_type: BindingTypeDescriptor, root_package) -> None:
        """Should be enabled after load and not loaded after unload."""
        assert sample_type.state == BindingTypeState.NOT_LOADED

        sample_type.load(root_package)
        assert sample_type.is_enabled()
        assert sample_type.containing_package is root_package

        sample_type.mark_duplicate(True)
        assert sample_type.is_duplicate()

        sample_type.unload()
        assert sample_type.state == BindingTypeState.NOT_LOADED
        with pytest.raises(NotLoadedError):
            _ = sample_type.containing_package

    def test_load_twice_raises(self, sample_type: BindingTypeDescriptor, root_package) -> None:
        sample_type.load(root_package)
        with pytest.raises(AlreadyLoadedError):
            sample_type.load(root_package)

    def test_mark_requires_load(self, sample_type: BindingTypeDescriptor) -> None:
        with pytest.raises(NotLoadedError):
            sample_type.mark_duplicate(True)


class TestBindingDescriptor:
    """Tests for BindingDescriptor."""

    def test_uuid_is_deterministic(self) -> None:
        """Should derive the same UUID from the same arguments."""
        a = BindingDescriptor.create("/path", "my/type", {"param": "value"})
        b = BindingDescriptor.create("/path", "my/type", {"param": "value"})

        assert a.uuid == b.uuid
        assert a.uuid.version == 5

    def test_uuid_depends_on_arguments(self) -> None:
        base = BindingDescriptor.create("/path", "my/type", {"param": "1"})

        assert BindingDescriptor.create("/other", "my/type", {"param": "1"}).uuid != base.uuid
        assert BindingDescriptor.create("/path", "my/other", {"param": "1"}).uuid != base.uuid
        assert BindingDescriptor.create("/path", "my/type", {"param": 1}).uuid != base.uuid
        assert BindingDescriptor.create("/path", "my/type", {"param": "1"}, "xpath").uuid != base.uuid

    def test_explicit_uuid(self) -> None:
        uuid = UUID("6ba7b810-9dad-11d1-80b4-00c04fd430c8")

        assert BindingDescriptor("/path", "my/type", uuid=uuid).uuid == uuid

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"query": "", "type_name": "my/type"},
            {"query": "/path", "type_name": ""},
            {"query": "/path", "type_name": "my/type", "language": ""},
            {"query": "/path", "type_name": "my/type", "parameter_values": {"a:b": 1}},
            {"query": "/path", "type_name": "my/type", "parameter_values": {"param": {"x": 1}}},
        ],
    )
    def test_rejects_invalid_arguments(self, kwargs: dict) -> None:
        with pytest.raises(ValidationError):
            BindingDescriptor(**kwargs)

    def test_unloaded_state(self, sample_binding: BindingDescriptor) -> None:
        assert sample_binding.state == BindingState.UNLOADED
        assert not sample_binding.is_loaded()
        with pytest.raises(NotLoadedError):
            _ = sample_binding.containing_package

    def test_held_back_without_type(self, sample_binding: BindingDescriptor, root_package) -> None:
        """Should be held back while its type is unknown."""
        sample_binding.load(root_package)

        assert sample_binding.is_held_back()
        assert sample_binding.type_descriptor is None

    def test_held_back_with_duplicate_type(
        self, sample_binding: BindingDescriptor, sample_type: BindingTypeDescriptor, root_package
    ) -> None:
        sample_type.load(root_package)
        sample_type.mark_duplicate(True)

        sample_binding.load(root_package, sample_type)

        assert sample_binding.is_held_back()

    def test_enabled_with_type(
        self, sample_binding: BindingDescriptor, sample_type: BindingTypeDescriptor, root_package
    ) -> None:
        sample_type.load(root_package)
        sample_binding.load(root_package, sample_type)

        assert sample_binding.is_enabled()
        assert sample_binding.type_descriptor is sample_type

    def test_parameter_defaults_are_merged_on_request(
        self, sample_binding: BindingDescriptor, sample_type: BindingTypeDescriptor, root_package
    ) -> None:
        """Should keep explicit values separate from the type's defaults."""
        sample_type.load(root_package)
        sample_binding.load(root_package, sample_type)

        assert sample_binding.get_parameter_values() == {}
        assert sample_binding.get_parameter_values(include_defaults=True) == {"param": "default"}
        assert sample_binding.get_parameter_value("param", include_defaults=True) == "default"
        assert not sample_binding.has_parameter_value("param")

    def test_explicit_values_win_over_defaults(
        self, sample_type: BindingTypeDescriptor, root_package
    ) -> None:
        binding = BindingDescriptor.create("/path", "my/type", {"param": "explicit"})
        sample_type.load(root_package)
        binding.load(root_package, sample_type)

        assert binding.get_parameter_values(include_defaults=True) == {"param": "explicit"}

    def test_ignored_if_required_parameter_missing(self, root_package) -> None:
        type_descriptor = BindingTypeDescriptor(
            "my/type", parameters=[BindingParameterDescriptor("param", required=True)]
        )
        type_descriptor.load(root_package)
        binding = BindingDescriptor.create("/path", "my/type")

        binding.load(root_package, type_descriptor)

        assert binding.is_ignored()
        [violation] = binding.get_violations()
        assert violation.code == ViolationCode.MISSING_PARAMETER
        assert violation.parameter_name == "param"

    def test_ignored_if_parameter_unknown(
        self, sample_type: BindingTypeDescriptor, root_package
    ) -> None:
        sample_type.load(root_package)
        binding = BindingDescriptor.create("/path", "my/type", {"foo": "bar"})

        binding.load(root_package, sample_type)

        assert binding.is_ignored()
        assert [v.code for v in binding.get_violations()] == [ViolationCode.NO_SUCH_PARAMETER]

    def test_disabled_by_install_info(
        self, sample_binding: BindingDescriptor, sample_type: BindingTypeDescriptor, package1
    ) -> None:
        """Should be disabled if the install record disables its UUID."""
        sample_type.load(package1)
        package1.install_info.add_disabled_binding_uuid(sample_binding.uuid)

        sample_binding.load(package1, sample_type)

        assert sample_binding.is_disabled()

    def test_state_precedence(
        self, sample_binding: BindingDescriptor, sample_type: BindingTypeDescriptor, package1
    ) -> None:
        """Overridden hides duplicate, duplicate hides disabled."""
        sample_type.load(package1)
        package1.install_info.add_disabled_binding_uuid(sample_binding.uuid)
        sample_binding.load(package1, sample_type)

        sample_binding.mark_duplicate(True)
        assert sample_binding.state == BindingState.DUPLICATE

        sample_binding.mark_overridden(True)
        assert sample_binding.state == BindingState.OVERRIDDEN

        sample_binding.mark_overridden(False)
        sample_binding.mark_duplicate(False)
        assert sample_binding.state == BindingState.DISABLED

    def test_load_rejects_other_type(
        self, sample_binding: BindingDescriptor, root_package
    ) -> None:
        other = BindingTypeDescriptor("my/other")
        other.load(root_package)

        with pytest.raises(ValidationError):
            sample_binding.load(root_package, other)

    def test_load_twice_raises(self, sample_binding: BindingDescriptor, root_package) -> None:
        sample_binding.load(root_package)
        with pytest.raises(AlreadyLoadedError):
            sample_binding.load(root_package)

    def test_unload_requires_load(self, sample_binding: BindingDescriptor) -> None:
        with pytest.raises(NotLoadedError):
            sample_binding.unload()

    def test_reload_round_trip(
        self, sample_binding: BindingDescriptor, sample_type: BindingTypeDescriptor, root_package
    ) -> None:
        """Should compute the same state and values after unload and load."""
        sample_type.load(root_package)
        sample_binding.load(root_package, sample_type)
        before = (
            sample_binding.query,
            sample_binding.type_name,
            sample_binding.get_parameter_values(),
            sample_binding.state,
        )

        sample_binding.mark_duplicate(True)
        sample_binding.unload()
        sample_binding.load(root_package, sample_type)

        after = (
            sample_binding.query,
            sample_binding.type_name,
            sample_binding.get_parameter_values(),
            sample_binding.state,
        )
        assert after == before


class TestBindingArguments:
    """Tests for BindingArguments."""

    def test_snapshot_includes_defaults(
        self, sample_binding: BindingDescriptor, sample_type: BindingTypeDescriptor, root_package
    ) -> None:
        sample_type.load(root_package)
        sample_binding.load(root_package, sample_type)

        arguments = BindingArguments.from_descriptor(sample_binding)

        assert arguments.query == "/path"
        assert arguments.type_name == "my/type"
        assert arguments.get_parameter_values() == {"param": "default"}
        assert arguments.language == "glob"

    def test_snapshot_does_not_follow_descriptor(
        self, sample_binding: BindingDescriptor, sample_type: BindingTypeDescriptor, root_package
    ) -> None:
        """Should keep its values after the descriptor is unloaded."""
        sample_type.load(root_package)
        sample_binding.load(root_package, sample_type)
        arguments = BindingArguments.from_descriptor(sample_binding)

        sample_binding.unload()

        assert arguments.get_parameter_values() == {"param": "default"}

    def test_equality_ignores_parameter_order(self) -> None:
        a = BindingArguments.create("/path", "my/type", {"a": 1, "b": 2})
        b = BindingArguments.create("/path", "my/type", {"b": 2, "a": 1})

        assert a == b


class TestBindingCriteria:
    """Tests for BindingCriteria."""

    def test_empty_criteria_match_everything(self, sample_binding: BindingDescriptor) -> None:
        assert BindingCriteria().matches(sample_binding)

    def test_uuid_prefix(self, sample_binding: BindingDescriptor) -> None:
        prefix = str(sample_binding.uuid)[:6]

        assert BindingCriteria(uuid_prefix=prefix).matches(sample_binding)
        assert BindingCriteria(uuid_prefix=prefix.upper()).matches(sample_binding)
        assert not BindingCriteria(uuid_prefix="zzzz").matches(sample_binding)

    def test_package_names(self, sample_binding: BindingDescriptor, package1) -> None:
        criteria = BindingCriteria(package_names=["vendor/package1"])

        assert not criteria.matches(sample_binding)
        sample_binding.load(package1)
        assert criteria.matches(sample_binding)
        assert not BindingCriteria(package_names={"vendor/package2"}).matches(sample_binding)

    def test_states_and_type(self, sample_binding: BindingDescriptor, package1) -> None:
        sample_binding.load(package1)

        assert BindingCriteria(states={BindingState.HELD_BACK}).matches(sample_binding)
        assert not BindingCriteria(states={BindingState.ENABLED}).matches(sample_binding)
        assert BindingCriteria(type_name="my/type").matches(sample_binding)
        assert not BindingCriteria(language="xpath").matches(sample_binding)


class TestInstallInfo:
    """Tests for InstallInfo."""

    def test_enabling_removes_from_disabled(self) -> None:
        """Should never hold a UUID in both lists."""
        info = InstallInfo("vendor/package", "vendor/package")
        uuid = BindingDescriptor.create("/path", "my/type").uuid

        info.add_disabled_binding_uuid(uuid)
        info.add_enabled_binding_uuid(uuid)

        assert info.has_enabled_binding_uuid(uuid)
        assert not info.has_disabled_binding_uuid(uuid)

        info.add_disabled_binding_uuid(uuid)

        assert info.has_disabled_binding_uuid(uuid)
        assert not info.has_enabled_binding_uuid(uuid)

    def test_requires_name_and_path(self) -> None:
        with pytest.raises(ValidationError):
            InstallInfo("", "path")
        with pytest.raises(ValidationError):
            InstallInfo("vendor/package", "")
