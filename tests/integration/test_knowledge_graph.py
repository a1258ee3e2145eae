"""Integration tests for philosophical entities, relations and lecture links."""

import uuid

import pytest

from lyceum.engines.curriculum.entity_service import EntityService
from lyceum.engines.curriculum.lecture_entity_service import LectureEntityService, parse_link_type
from lyceum.engines.curriculum.relation_service import RelationService, normalize_relation_types
from lyceum.errors import ConflictError, NotFoundError, ValidationError
from lyceum.kernel.models import (
    EntityType,
    LectureEntityRelationType,
    PhilosophicalEntity,
    PhilosophicalRelation,
)


async def entity(service: EntityService, name: str, entity_type: str = "PhilosophicalConcept"):
    return await service.create_entity({"name": name, "type": entity_type})


class TestEntityService:
    """Entity CRUD and validation."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, db_session, make_lecture):
        lecture = await make_lecture("Plato")
        service = EntityService(db_session)
        plato = await service.create_entity({
            "name": "  Plato ",
            "type": "Philosopher",
            "start_year": -428,
            "end_year": -348,
            "key_terms": ["Forms", " ", "anamnesis"],
            "lecture_id": lecture.id,
        })

        fetched = await service.get_entity(plato.id)
        assert fetched.name == "Plato"
        assert fetched.key_terms == ["Forms", "anamnesis"]

    @pytest.mark.asyncio
    async def test_invalid_type(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await EntityService(db_session).create_entity({"name": "Plato", "type": "Sophist"})
        assert exc_info.value.invalid_fields == ["type"]

    @pytest.mark.asyncio
    async def test_years_must_be_ordered(self, db_session):
        service = EntityService(db_session)
        with pytest.raises(ValidationError):
            await service.create_entity({"name": "Kant", "type": "Philosopher", "start_year": 1804, "end_year": 1724})

        kant = await service.create_entity({"name": "Kant", "type": "Philosopher", "start_year": 1724})
        with pytest.raises(ValidationError):
            await service.update_entity(kant.id, {"end_year": 1700})

    @pytest.mark.asyncio
    async def test_unknown_lecture(self, db_session):
        with pytest.raises(NotFoundError):
            await EntityService(db_session).create_entity(
                {"name": "Plato", "type": "Philosopher", "lecture_id": uuid.uuid4()}
            )

    @pytest.mark.asyncio
    async def test_list_filters(self, db_session):
        service = EntityService(db_session)
        await entity(service, "Virtue")
        await entity(service, "Aristotle", "Philosopher")
        await entity(service, "Stoicism", "Movement")

        items, total = await service.list_entities(entity_type="Philosopher")
        assert total == 1
        assert items[0].name == "Aristotle"

        items, total = await service.list_entities(search="virt")
        assert [item.name for item in items] == ["Virtue"]

    @pytest.mark.asyncio
    async def test_delete_removes_relations(self, db_session):
        service = EntityService(db_session)
        a = await entity(service, "Being")
        b = await entity(service, "Becoming")
        await RelationService(db_session).create_relation(a.id, b.id, ["contrast"])

        await service.delete_entity(a.id)
        await db_session.flush()

        with pytest.raises(NotFoundError):
            await service.get_entity(a.id)
        assert await service.relationships(b.id) == []


class TestRelationService:
    """Relation validation and listing."""

    def test_normalize_relation_types(self):
        assert normalize_relation_types(["influence", " INFLUENCE", "critique"]) == ["INFLUENCE", "CRITIQUE"]
        assert normalize_relation_types(None) == []

    @pytest.mark.asyncio
    async def test_create(self, db_session):
        entities = EntityService(db_session)
        socrates = await entity(entities, "Socrates", "Philosopher")
        plato = await entity(entities, "Plato", "Philosopher")

        relation = await RelationService(db_session).create_relation(
            socrates.id, plato.id, ["influence"], description="Teacher of Plato", importance=5
        )
        assert relation.relation_types == ["INFLUENCE"]
        assert relation.importance == 5

    @pytest.mark.asyncio
    async def test_all_problems_reported_together(self, db_session):
        entities = EntityService(db_session)
        era = await entity(entities, "Hellenistic", "Era")

        with pytest.raises(ValidationError) as exc_info:
            await RelationService(db_session).create_relation(era.id, uuid.uuid4(), ["DEVELOPMENT", "TELEPATHY"])
        message = exc_info.value.message
        assert "Unknown relation types: TELEPATHY" in message
        assert "Target entity does not exist" in message
        assert "DEVELOPMENT requires" in message
        assert set(exc_info.value.invalid_fields) == {"relation_types", "target_entity_id", "source_entity_id"}

    @pytest.mark.asyncio
    async def test_addresses_problematic_needs_problematic_target(self, db_session):
        entities = EntityService(db_session)
        kant = await entity(entities, "Kant", "Philosopher")
        idealism = await entity(entities, "Idealism", "Movement")
        induction = await entity(entities, "Problem of induction", "Problematic")
        service = RelationService(db_session)

        with pytest.raises(ValidationError):
            await service.create_relation(kant.id, idealism.id, ["ADDRESSES_PROBLEMATIC"])
        relation = await service.create_relation(kant.id, induction.id, ["ADDRESSES_PROBLEMATIC"])
        assert relation.target_entity_id == induction.id

    @pytest.mark.asyncio
    async def test_self_relation_and_empty_types(self, db_session):
        concept = await entity(EntityService(db_session), "Substance")
        with pytest.raises(ValidationError) as exc_info:
            await RelationService(db_session).create_relation(concept.id, concept.id, [])
        assert "; " in exc_info.value.message

    @pytest.mark.asyncio
    async def test_list_by_type(self, db_session):
        entities = EntityService(db_session)
        a = await entity(entities, "A")
        b = await entity(entities, "B")
        c = await entity(entities, "C")
        service = RelationService(db_session)
        await service.create_relation(a.id, b.id, ["CRITIQUE"], importance=2)
        await service.create_relation(b.id, c.id, ["CRITIQUE", "SYNTHESIS"], importance=4)
        await service.create_relation(a.id, c.id, ["CONTRAST"])

        items, total = await service.list_relations(relation_type="critique")
        assert total == 2
        assert [r.importance for r in items] == [4, 2]

        items, total = await service.list_relations(entity_id=a.id)
        assert total == 2

    @pytest.mark.asyncio
    async def test_update_and_delete(self, db_session):
        entities = EntityService(db_session)
        a = await entity(entities, "A")
        b = await entity(entities, "B")
        service = RelationService(db_session)
        relation = await service.create_relation(a.id, b.id, ["CONTRAST"])

        updated = await service.update_relation(relation.id, relation_types=["synthesis"], importance=1)
        assert updated.relation_types == ["SYNTHESIS"]
        with pytest.raises(ValidationError):
            await service.update_relation(relation.id, importance=0)

        await service.delete_relation(relation.id)
        await db_session.flush()
        with pytest.raises(NotFoundError):
            await service.get_relation(relation.id)


class TestLearningPath:
    """HIERARCHICAL relations order what to study first."""

    @pytest.mark.asyncio
    async def test_path_lists_prerequisites_first(self, db_session):
        entities = EntityService(db_session)
        logic = await entity(entities, "Logic")
        epistemology = await entity(entities, "Epistemology")
        metaphysics = await entity(entities, "Metaphysics")
        ethics = await entity(entities, "Ethics")
        relations = RelationService(db_session)
        await relations.create_relation(logic.id, epistemology.id, ["HIERARCHICAL"])
        await relations.create_relation(epistemology.id, metaphysics.id, ["HIERARCHICAL"])
        await relations.create_relation(ethics.id, metaphysics.id, ["INFLUENCE"])

        path = await entities.learning_path(metaphysics.id)
        assert [e.name for e in path] == ["Logic", "Epistemology", "Metaphysics"]

        prerequisites = await entities.prerequisites(metaphysics.id)
        assert [e.name for e in prerequisites] == ["Epistemology"]

    @pytest.mark.asyncio
    async def test_cycles_are_skipped(self, db_session):
        entities = EntityService(db_session)
        a = await entity(entities, "A")
        b = await entity(entities, "B")
        db_session.add_all([
            PhilosophicalRelation(source_entity_id=a.id, target_entity_id=b.id, relation_types=["HIERARCHICAL"]),
            PhilosophicalRelation(source_entity_id=b.id, target_entity_id=a.id, relation_types=["HIERARCHICAL"]),
        ])
        await db_session.flush()

        path = await entities.learning_path(b.id)
        assert [e.name for e in path] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_chain_deeper_than_recursion_limit(self, db_session):
        chain = [
            PhilosophicalEntity(id=uuid.uuid4(), name=f"Step {i}", type=EntityType.CONCEPT)
            for i in range(1500)
        ]
        db_session.add_all(chain)
        db_session.add_all([
            PhilosophicalRelation(
                source_entity_id=earlier.id,
                target_entity_id=later.id,
                relation_types=["HIERARCHICAL"],
            )
            for earlier, later in zip(chain, chain[1:])
        ])
        await db_session.flush()

        path = await EntityService(db_session).learning_path(chain[-1].id)
        assert [e.id for e in path] == [e.id for e in chain]

    @pytest.mark.asyncio
    async def test_entity_without_prerequisites(self, db_session):
        entities = EntityService(db_session)
        lone = await entity(entities, "Aporia")
        assert [e.name for e in await entities.learning_path(lone.id)] == ["Aporia"]


class TestLectureEntityLinks:
    """Links between lectures and the entities they cover."""

    def test_parse_link_type(self):
        assert parse_link_type(None) == LectureEntityRelationType.INTRODUCES
        assert parse_link_type(" ") == LectureEntityRelationType.INTRODUCES
        assert parse_link_type("critiques") == LectureEntityRelationType.CRITIQUES
        with pytest.raises(ValidationError):
            parse_link_type("ignores")

    @pytest.mark.asyncio
    async def test_link_update_unlink(self, db_session, make_lecture):
        lecture = await make_lecture("Republic")
        forms = await entity(EntityService(db_session), "Theory of Forms")
        service = LectureEntityService(db_session)

        link = await service.link_entity(lecture.id, forms.id, "introduces")
        with pytest.raises(ConflictError):
            await service.link_entity(lecture.id, forms.id)

        expanded = await service.link_entity(lecture.id, forms.id, "EXPANDS")
        with pytest.raises(ConflictError):
            await service.update_link(lecture.id, expanded.id, "Introduces")

        updated = await service.update_link(lecture.id, link.id, "applies")
        assert updated.relation_type == "APPLIES"

        rows = await service.list_links(lecture.id)
        assert len(rows) == 2
        assert all(e.id == forms.id for _, e in rows)

        await service.unlink(lecture.id, link.id)
        await db_session.flush()
        assert len(await service.list_links(lecture.id)) == 1

    @pytest.mark.asyncio
    async def test_link_must_belong_to_lecture(self, db_session, make_lecture):
        republic = await make_lecture("Republic")
        laws = await make_lecture("Laws")
        forms = await entity(EntityService(db_session), "Theory of Forms")
        service = LectureEntityService(db_session)
        link = await service.link_entity(republic.id, forms.id)

        with pytest.raises(NotFoundError):
            await service.get_link(laws.id, link.id)
        with pytest.raises(NotFoundError):
            await service.link_entity(republic.id, uuid.uuid4())
