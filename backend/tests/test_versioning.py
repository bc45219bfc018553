"""
DeployWatch - Unit Tests for Version Comparison and Change Classification
"""
import pytest

from deploywatch.core.models import ChangeType
from deploywatch.core.versioning import INITIAL_SENTINEL, classify_change, compare_versions


class TestCompareVersions:
    """Tests for compare_versions"""
    
    def test_equal_versions(self):
        assert compare_versions("1.2.3", "1.2.3") == 0
    
    def test_missing_trailing_components_are_zero(self):
        """Test "1.2.0" and "1.2" compare equal"""
        assert compare_versions("1.2.0", "1.2") == 0
        assert compare_versions("1", "1.0.0") == 0
    
    def test_greater_major_wins(self):
        assert compare_versions("2.0.0", "1.9.9") == 1
    
    def test_numeric_not_lexical(self):
        """Test components compare as numbers: 1.10 > 1.9"""
        assert compare_versions("1.10.0", "1.9.0") == 1
        assert compare_versions("1.9", "1.10") == -1
    
    def test_first_differing_component_decides(self):
        assert compare_versions("1.2.9", "1.3.0") == -1
    
    @pytest.mark.parametrize("a,b", [
        ("1.0.0", "2.0.0"),
        ("3.4.5", "3.4"),
        ("0.0.1", "0.1"),
        ("10.0", "9.99.99"),
    ])
    def test_antisymmetric(self, a, b):
        """Test compare(a, b) == -compare(b, a)"""
        assert compare_versions(a, b) == -compare_versions(b, a)
    
    def test_none_is_incomparable(self):
        assert compare_versions(None, "1.0.0") == 0
        assert compare_versions("1.0.0", None) == 0
        assert compare_versions(None, None) == 0
    
    def test_non_numeric_is_incomparable(self):
        """Test non-numeric components fail closed to 0"""
        assert compare_versions("2.0.0-beta", "1.0.0") == 0
        assert compare_versions("v2.0.0", "1.0.0") == 0
        assert compare_versions("latest", "1.0.0") == 0
        assert compare_versions("", "1.0.0") == 0


class TestClassifyChange:
    """Tests for classify_change"""
    
    def test_first_version_is_initial(self):
        assert classify_change(None, "1.0.0") == ChangeType.INITIAL
    
    def test_sentinel_previous_is_initial(self):
        assert classify_change(INITIAL_SENTINEL, "1.0.0") == ChangeType.INITIAL
    
    def test_major(self):
        assert classify_change("1.0.0", "2.0.0") == ChangeType.MAJOR
    
    def test_major_downgrade(self):
        """Test a rollback across majors is still major"""
        assert classify_change("2.3.1", "1.9.0") == ChangeType.MAJOR
    
    def test_minor(self):
        assert classify_change("1.0.0", "1.1.0") == ChangeType.MINOR
    
    def test_patch(self):
        assert classify_change("1.0.0", "1.0.1") == ChangeType.PATCH
    
    def test_only_major_component_present(self):
        """Test minor isn't compared when one side has a single component"""
        assert classify_change("1", "1.5") == ChangeType.PATCH
    
    def test_non_numeric_is_unknown(self):
        assert classify_change("1.0.0", "release-7") == ChangeType.UNKNOWN
        assert classify_change("1.x", "1.y") == ChangeType.UNKNOWN
    
    def test_non_numeric_patch_ignored(self):
        """Test components after minor are never parsed"""
        assert classify_change("1.0.0", "1.0.hotfix") == ChangeType.PATCH


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
