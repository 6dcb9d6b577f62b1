"""
Tests for request schemas: type aliases, tagged details and status input
"""
import pytest
from pydantic import ValidationError as PydanticValidationError

from models import MemberRole, ProjectStatus, ProjectType
from schemas import ProjectCreate, StatusUpdate, TeamMemberIn, parse_details


class TestProjectCreate:

    def test_untagged_details_take_project_type(self):
        payload = ProjectCreate(
            title='Paper', description='On graphs', type='Academic Publication',
            details={'venue': 'SODA', 'doi': '10.1000/xyz'},
        )

        assert payload.type == ProjectType.publication
        assert payload.details.venue == 'SODA'
        assert payload.details.type == 'Academic Publication'

    def test_missing_details_default_to_empty_payload(self):
        payload = ProjectCreate(title='T', description='D', type='Social Service')

        assert payload.details.model_dump() == {
            'type': 'Social Service', 'beneficiary_organization': None,
        }

    def test_missing_type_is_other(self):
        payload = ProjectCreate(title='T', description='D')

        assert payload.type == ProjectType.other

    @pytest.mark.parametrize('label, expected', [
        ('capstone', ProjectType.capstone),
        ('COMPETITION', ProjectType.competition),
        ('service', ProjectType.social_service),
        ('Academic Publication', ProjectType.publication),
    ])
    def test_type_aliases(self, label, expected):
        assert ProjectCreate(title='T', description='D', type=label).type == expected

    def test_mismatched_details(self):
        with pytest.raises(PydanticValidationError):
            ProjectCreate(title='T', description='D', type='Capstone',
                          details={'type': 'Competition Work'})

    @pytest.mark.parametrize('field', ['title', 'description'])
    def test_blank_required_text(self, field):
        data = {'title': 'T', 'description': 'D', field: '   '}

        with pytest.raises(PydanticValidationError):
            ProjectCreate(**data)

    def test_lists_are_cleaned(self):
        payload = ProjectCreate(title='T', description='D',
                                keywords=[' ai ', '', 'iot'], external_links=['  '])

        assert payload.keywords == ['ai', 'iot']
        assert payload.external_links == []


class TestParseDetails:

    def test_fills_type(self):
        assert parse_details(ProjectType.competition, {'award': 'Silver'}) == {
            'type': 'Competition Work', 'competition_name': None, 'award': 'Silver',
        }

    def test_rejects_other_type(self):
        with pytest.raises(ValueError):
            parse_details(ProjectType.capstone, {'type': 'Other'})

    def test_rejects_bad_shape(self):
        with pytest.raises(ValueError):
            parse_details(ProjectType.publication, {'venue': ['not', 'a', 'string']})


class TestStatusAndMembers:

    @pytest.mark.parametrize('label, expected', [
        ('Completed', ProjectStatus.approved),
        ('approve', ProjectStatus.approved),
        ('deny', ProjectStatus.rejected),
        ('REJECTED', ProjectStatus.rejected),
        ('submitted', ProjectStatus.under_review),
        ('Under Review', ProjectStatus.under_review),
    ])
    def test_status_aliases(self, label, expected):
        assert StatusUpdate(status=label).status == expected

    def test_unknown_status(self):
        with pytest.raises(PydanticValidationError):
            StatusUpdate(status='archived')

    def test_member_role_is_case_insensitive(self):
        assert TeamMemberIn(email='prof@example.edu', role='Lecturer').role == MemberRole.lecturer

    def test_member_role_must_be_known(self):
        with pytest.raises(PydanticValidationError):
            TeamMemberIn(email='ta@example.edu', role='assistant')
