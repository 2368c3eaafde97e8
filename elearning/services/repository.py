"""Generic create / read / update / delete over one entity type.

Repository methods flush but never commit: the caller owns the unit of work
(see ``elearning.db.database.session_scope``). Relationships are not loaded
implicitly under asyncio, so reads take ``load=("modules", "modules.lessons")``
for eager loading and ``related()`` resolves a single relation on demand.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import timedelta

import pydantic
from pydantic import BaseModel
from sqlalchemy import Uuid, delete, func, inspect, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload, with_parent

from elearning.db.database import store_errors
from elearning.db.types import utcnow
from elearning.errors import (
    MissingReferenceError,
    NotFoundError,
    ReferentialIntegrityError,
    UniquenessConflict,
    ValidationError,
)
from elearning.services.policies import OnDelete, list_rules_for, rules_for

logger = logging.getLogger(__name__)


def _coerce_id(value):
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _is_indexed(column):
    return bool(column.primary_key or column.unique or column.index or column.foreign_keys)


async def _ids(session, model, foreign_key, parent_ids):
    with store_errors():
        result = await session.execute(select(model.id).where(foreign_key.in_(parent_ids)))
    return list(result.scalars().all())


async def _blocking_dependents(session, model, ids, found=None):
    """Count restricting dependents of ``ids`` across the whole cascade tree."""
    found = {} if found is None else found
    for rule in rules_for(model):
        foreign_key = getattr(rule.child, rule.foreign_key)
        if rule.action is OnDelete.RESTRICT:
            stmt = select(func.count()).select_from(rule.child).where(foreign_key.in_(ids))
            with store_errors():
                count = (await session.execute(stmt)).scalar_one()
            if count:
                name = rule.child.__name__
                found[name] = found.get(name, 0) + count
        elif rule.action is OnDelete.CASCADE:
            child_ids = await _ids(session, rule.child, foreign_key, ids)
            if child_ids:
                await _blocking_dependents(session, rule.child, child_ids, found)
    return found


async def drop_listed_ids(session, rule, ids, scope):
    """Remove ``ids`` from ``rule.field`` on every holder whose key is in ``scope``."""
    dropped = set(ids)
    key = getattr(rule.holder, rule.holder_key)
    stmt = select(rule.holder).where(key.in_(scope)).execution_options(populate_existing=True)
    with store_errors():
        result = await session.execute(stmt)
    changed = False
    for holder in result.scalars().all():
        listed = getattr(holder, rule.field) or []
        kept = [item for item in listed if item not in dropped]
        if len(kept) != len(listed):
            setattr(holder, rule.field, kept)
            changed = True
            logger.debug(f"Dropped {len(listed) - len(kept)} id(s) from {rule.holder.__name__} {holder.id}.{rule.field}")
    if changed:
        # a later pass reloads the holders, so write these edits out now
        with store_errors():
            await session.flush()


async def _apply_delete_rules(session, model, ids):
    # id lists first, while the rows that scope them still exist
    for rule in list_rules_for(model):
        await drop_listed_ids(session, rule, ids, rule.scope(ids))
    for rule in rules_for(model):
        foreign_key = getattr(rule.child, rule.foreign_key)
        if rule.action is OnDelete.CASCADE:
            child_ids = await _ids(session, rule.child, foreign_key, ids)
            if not child_ids:
                continue
            await _apply_delete_rules(session, rule.child, child_ids)
            with store_errors():
                await session.execute(delete(rule.child).where(rule.child.id.in_(child_ids)))
            logger.debug(f"Cascaded delete to {len(child_ids)} {rule.child.__name__} record(s)")
        elif rule.action is OnDelete.SET_NULL:
            with store_errors():
                await session.execute(
                    update(rule.child).where(foreign_key.in_(ids)).values({foreign_key: None})
                )


class Repository:
    """CRUD and relation traversal for ``model``, validated by ``create_schema``."""

    def __init__(self, model, create_schema):
        self.model = model
        self.create_schema = create_schema
        self.entity = model.__name__
        mapper = inspect(model)
        # stored column name -> python attribute, e.g. "courseId" -> "course_id"
        self._attribute_keys = {
            attr.columns[0].name: attr.key for attr in mapper.column_attrs if attr.columns[0].name != attr.key
        }

    # --- reads ---

    async def get(self, session, id, load=()):
        record_id = _coerce_id(id)
        if record_id is None:
            raise NotFoundError(self.entity, id)
        stmt = self._select(load).where(self.model.id == record_id)
        with store_errors():
            result = await session.execute(stmt)
        instance = result.scalars().first()
        if instance is None:
            raise NotFoundError(self.entity, id)
        return instance

    async def list(self, session, load=(), **filters):
        """Records matching every filter; filters must name indexed fields."""
        stmt = self._select(load).where(*self._filter_criteria(filters))
        if "order" in inspect(self.model).columns:
            stmt = stmt.order_by(self.model.order)
        with store_errors():
            result = await session.execute(stmt)
        return list(result.scalars().all())

    async def get_by(self, session, load=(), **filters):
        stmt = self._select(load).where(*self._filter_criteria(filters)).limit(1)
        with store_errors():
            result = await session.execute(stmt)
        instance = result.scalars().first()
        if instance is None:
            raise NotFoundError(self.entity, filters)
        return instance

    async def related(self, session, instance, name):
        """Resolve one declared relation of ``instance``.

        To-many relations give a list, to-one relations the record or None.
        """
        prop = self._relationship(name)
        stmt = select(prop.mapper.class_).where(with_parent(instance, getattr(self.model, name)))
        if prop.order_by:
            stmt = stmt.order_by(*prop.order_by)
        with store_errors():
            result = await session.execute(stmt)
        items = list(result.scalars().all())
        if prop.uselist:
            return items
        return items[0] if items else None

    # --- writes ---

    async def create(self, session, data=None, **fields):
        values = self._validate(self._incoming(data, fields))
        await self._check_references(session, values)
        await self._check_unique(session, values)
        await self._check_invariants(session, values)

        instance = self.model(**values)
        self._stamp(instance, created=True)
        session.add(instance)
        await self._flush(session)
        logger.info(f"{self.entity} {instance.id} created")
        return instance

    async def update(self, session, id, data=None, **fields):
        """Merge a partial set of fields into the record and revalidate it whole."""
        instance = await self._get_for_update(session, id)
        changes = self._incoming(data, fields)
        current = {name: getattr(instance, name) for name in self.create_schema.model_fields}
        values = self._validate({**current, **changes})
        changed = {key: values[key] for key in changes}

        await self._check_references(session, changed)
        await self._check_unique(session, changed, exclude=instance.id)
        await self._check_invariants(session, values, instance)
        await self._before_change(session, instance, changed)

        for key, value in changed.items():
            setattr(instance, key, value)
        self._stamp(instance)
        await self._flush(session)
        logger.info(f"{self.entity} {instance.id} updated: {sorted(changed)}")
        return instance

    async def delete(self, session, id):
        instance = await self._get_for_update(session, id)
        blocking = await _blocking_dependents(session, self.model, [instance.id])
        if blocking:
            logger.warning(f"Delete of {self.entity} {instance.id} blocked by {blocking}")
            raise ReferentialIntegrityError(self.entity, instance.id, blocking)

        with self._integrity(deleting=instance.id):
            await _apply_delete_rules(session, self.model, [instance.id])
            with store_errors():
                await session.execute(delete(self.model).where(self.model.id == instance.id))
        await self._flush(session)
        logger.info(f"{self.entity} {instance.id} deleted")

    # --- hooks ---

    async def _check_invariants(self, session, values, instance=None):
        """Cross-entity rules; ``values`` is the complete validated record."""

    async def _before_change(self, session, instance, changed):
        """Keep dependent records consistent; ``instance`` still holds the old values."""

    # --- helpers ---

    def _select(self, load):
        stmt = select(self.model)
        if load:
            # refresh records already in the session so the eager loads apply
            stmt = stmt.options(*self._load_options(load)).execution_options(populate_existing=True)
        return stmt

    async def _get_for_update(self, session, id):
        record_id = _coerce_id(id)
        if record_id is None:
            raise NotFoundError(self.entity, id)
        stmt = (
            select(self.model)
            .where(self.model.id == record_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        with store_errors():
            result = await session.execute(stmt)
        instance = result.scalars().first()
        if instance is None:
            raise NotFoundError(self.entity, id)
        return instance

    def _incoming(self, data, fields):
        if data is None:
            payload = {}
        elif isinstance(data, BaseModel):
            payload = data.model_dump(exclude_unset=True)
        else:
            payload = dict(data)
        payload.update(fields)
        return {self._attribute_keys.get(key, key): value for key, value in payload.items()}

    def _validate(self, values):
        try:
            return self.create_schema.model_validate(values).model_dump()
        except pydantic.ValidationError as exc:
            logger.warning(f"{self.entity} rejected: {exc.error_count()} invalid field(s)")
            raise ValidationError(f"Invalid {self.entity}: {exc}", errors=exc.errors()) from exc

    def _references(self):
        mapper = inspect(self.model)
        by_table = {m.local_table: m.class_ for m in mapper.registry.mappers}
        references = {}
        for attr in mapper.column_attrs:
            for foreign_key in attr.columns[0].foreign_keys:
                references[attr.key] = by_table[foreign_key.column.table]
        return references

    async def _check_references(self, session, values):
        for key, target in self._references().items():
            value = values.get(key)
            if value is None:
                continue
            with store_errors():
                found = await session.get(target, value)
            if found is None:
                logger.warning(f"{self.entity}.{key} references missing {target.__name__} {value}")
                raise MissingReferenceError(target.__name__, value, key)

    async def _check_unique(self, session, values, exclude=None):
        for attr in inspect(self.model).column_attrs:
            column = attr.columns[0]
            if not column.unique or column.primary_key:
                continue
            value = values.get(attr.key)
            if value is None:
                continue
            stmt = select(self.model.id).where(getattr(self.model, attr.key) == value)
            if exclude is not None:
                stmt = stmt.where(self.model.id != exclude)
            with store_errors():
                taken = (await session.execute(stmt.limit(1))).first()
            if taken is not None:
                logger.warning(f"{self.entity}.{attr.key} conflict on {value!r}")
                raise UniquenessConflict(self.entity, attr.key, value)

    def _filter_criteria(self, filters):
        columns = inspect(self.model).columns
        criteria = []
        for name, value in filters.items():
            key = self._attribute_keys.get(name, name)
            column = columns.get(key)
            if column is None or not _is_indexed(column):
                raise ValidationError(
                    f"{self.entity} cannot be filtered by {name!r}",
                    errors=[{"loc": (name,), "msg": "not an indexed field", "type": "filter"}],
                )
            attribute = getattr(self.model, key)
            if value is None:
                criteria.append(attribute.is_(None))
                continue
            if isinstance(column.type, Uuid):
                value = _coerce_id(value)
                if value is None:
                    raise ValidationError(
                        f"{self.entity}.{key} filter is not a valid identifier",
                        errors=[{"loc": (name,), "msg": "invalid identifier", "type": "uuid"}],
                    )
            criteria.append(attribute == value)
        return criteria

    def _relationship(self, name):
        relationships = inspect(self.model).relationships
        if name not in relationships:
            raise ValidationError(
                f"{self.entity} has no relation {name!r}",
                errors=[{"loc": (name,), "msg": "unknown relation", "type": "relation"}],
            )
        return relationships[name]

    def _load_options(self, load):
        if isinstance(load, str):
            load = (load,)
        options = []
        for path in load:
            model, option = self.model, None
            for name in path.split("."):
                relationships = inspect(model).relationships
                if name not in relationships:
                    raise ValidationError(
                        f"{model.__name__} has no relation {name!r}",
                        errors=[{"loc": (path,), "msg": "unknown relation", "type": "relation"}],
                    )
                attribute = getattr(model, name)
                option = selectinload(attribute) if option is None else option.selectinload(attribute)
                model = relationships[name].mapper.class_
            options.append(option)
        return options

    def _stamp(self, instance, created=False):
        stamps = getattr(self.model, "__auto_timestamps__", None)
        if not stamps:
            return
        created_field, modified_field = stamps
        now = utcnow()
        if created:
            setattr(instance, created_field, now)
            setattr(instance, modified_field, now)
            return
        previous = getattr(instance, modified_field)
        if previous is not None and now <= previous:
            # keep it strictly increasing even when the clock has not moved
            now = previous + timedelta(microseconds=1)
        setattr(instance, modified_field, now)

    @contextmanager
    def _integrity(self, deleting=None):
        """``deleting`` is the id of the record being deleted, if any."""
        try:
            yield
        except IntegrityError as exc:
            message = str(exc.orig).lower()
            logger.warning(f"{self.entity} write rejected by the store: {exc.orig}")
            if "unique" in message or "duplicate" in message:
                raise UniquenessConflict(self.entity) from exc
            if deleting is not None and "foreign key" in message:
                raise ReferentialIntegrityError(self.entity, deleting, {}) from exc
            raise ValidationError(f"Invalid {self.entity}: {exc.orig}") from exc

    async def _flush(self, session):
        with self._integrity():
            with store_errors():
                await session.flush()
