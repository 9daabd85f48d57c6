"""
Fold per-batch partial artifacts into one de-duplicated TestPlan.

Merge order:
1. Union every list section across partials, in batch order
2. Deduplicate stories and test cases by normalized id-or-title
3. Fuzzy-group sectioned collections and accumulate their text
4. Set-union plain string sections
5. Sort every collection by its normalized primary key
"""

import json
import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..config import MergeSettings
from ..errors import NoEndpointsError
from ..models import LIST_SECTIONS, TestPlan, empty_environment
from .keys import UNSPECIFIED_KEY, KeyNormalizer, find_similar_key, normalize_text

logger = logging.getLogger(__name__)

# Description-only sections grouped on their description text
DESCRIPTION_SECTIONS = [
    'entryCriteria',
    'exitCriteria',
    'testExecutionStrategy',
    'testSchedule',
    'toolsAndAutomationStrategy',
]

STRING_SECTIONS = [
    'featuresToBeTested',
    'featuresNotToBeTested',
    'passCriteria',
    'failCriteria',
    'suspensionCriteria',
    'testDataRequirements',
    'negativeScenarios',
]

IMPACT_PRIORITY = ['High', 'Medium', 'Low']

Partial = Union[Dict[str, Any], TestPlan]


def join_lines(lines: Sequence[str]) -> str:
    """Render accumulated text as "- line" bullets."""
    return '\n'.join(f"- {line}" for line in lines if line)


def _stable_repr(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)


def _as_items(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _as_object(item: Any, text_field: str) -> Optional[Dict[str, Any]]:
    """Section items should be objects; bare strings become {text_field: s}."""
    if isinstance(item, dict):
        return item
    if isinstance(item, str) and item.strip():
        return {text_field: item}
    return None


class _Accumulator:
    """Ordered set of text values per field for one fuzzy group."""

    def __init__(self, label: str = ''):
        self.label = label
        self.fields: Dict[str, Dict[str, None]] = {}

    def add(self, name: str, value: Any):
        values = self.fields.setdefault(name, {})
        for item in _as_items(value):
            text = normalize_text(item)
            if text:
                values[text] = None

    def get(self, name: str) -> List[str]:
        return list(self.fields.get(name, {}))


class PlanMerger:
    """
    Merge partial artifacts into a single TestPlan.

    Example:
        merger = PlanMerger(MergeSettings(similarity_threshold=0.8))
        plan = merger.merge([partial_1, partial_2])
    """

    def __init__(self, settings: Optional[MergeSettings] = None):
        """
        Initialize merger.

        Args:
            settings: Threshold, alias table and stopwords (defaults apply)
        """
        self.settings = settings or MergeSettings()
        self.key = KeyNormalizer(self.settings)

    def merge(self, partials: Sequence[Partial]) -> TestPlan:
        """
        Merge partials in batch order.

        Args:
            partials: Partial artifacts (wire-format dicts or TestPlans)

        Returns:
            Merged TestPlan with every section present

        Raises:
            NoEndpointsError: If there are no partials or no stories survive
        """
        if not partials:
            raise NoEndpointsError('No partial results to merge')

        documents = [p.to_dict() if isinstance(p, TestPlan) else p for p in partials]
        documents = [d for d in documents if isinstance(d, dict)]
        merged = self._union(documents)

        merged['stories'] = self._merge_stories(merged['stories'])

        merged['riskAssessment'] = self._merge_risks(merged['riskAssessment'])
        merged['deliverables'] = self._merge_deliverables(merged['deliverables'])
        merged['successCriteria'] = self._merge_success_criteria(merged['successCriteria'])
        merged['rolesAndResponsibility'] = self._merge_roles(merged['rolesAndResponsibility'])
        merged['staffingAndTraining'] = self._merge_staffing(merged['staffingAndTraining'])

        for section in DESCRIPTION_SECTIONS:
            merged[section] = self._group_and_merge(merged[section], ['description'], ['description'])
        merged['approvalsAndSignoffs'] = self._group_and_merge(
            merged['approvalsAndSignoffs'], ['approver', 'title', 'description'], ['description']
        )

        merged['references'] = self._unique_by(
            merged['references'], 'title', lambda r: self._joined_key(r, ['title', 'url'])
        )
        merged['testItems'] = self._unique_by(
            merged['testItems'], 'description', lambda t: self._joined_key(t, ['id', 'endpoint', 'method'])
        )

        for section in STRING_SECTIONS:
            merged[section] = self._unique_strings(merged[section])

        self._sort_sections(merged)
        merged['traceabilityMatrix'] = self._merge_traceability(merged['traceabilityMatrix'])

        plan = TestPlan.from_dict(merged)
        if not plan.stories:
            raise NoEndpointsError('Merged result contains no stories')

        logger.info(
            f"Merged {len(documents)} partials: {len(plan.stories)} stories, "
            f"{plan.test_case_count} test cases"
        )
        return plan

    # ------------------------------------------------------------------
    # Union

    def _union(self, documents: List[Dict[str, Any]]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {
            'title': '',
            'description': '',
            'stories': [],
            'environmentRequirements': None,
            'traceabilityMatrix': OrderedDict(),
        }
        for section in LIST_SECTIONS:
            merged[section] = []

        for doc in documents:
            for scalar in ('title', 'description'):
                if not merged[scalar] and normalize_text(doc.get(scalar)):
                    merged[scalar] = normalize_text(doc.get(scalar))

            stories = doc.get('stories')
            if isinstance(stories, list):
                merged['stories'].extend(s for s in stories if isinstance(s, dict))

            for section in LIST_SECTIONS:
                merged[section].extend(_as_items(doc.get(section)))

            env = doc.get('environmentRequirements')
            if merged['environmentRequirements'] is None and self._environment_populated(env):
                merged['environmentRequirements'] = env

            matrix = doc.get('traceabilityMatrix')
            if isinstance(matrix, dict):
                for req_id, case_ids in matrix.items():
                    merged['traceabilityMatrix'].setdefault(str(req_id), []).extend(_as_items(case_ids))

        merged['environmentRequirements'] = self._normalize_environment(merged['environmentRequirements'])
        return merged

    @staticmethod
    def _environment_populated(env: Any) -> bool:
        if not isinstance(env, dict):
            return False
        return bool(_as_items(env.get('hardware')) or _as_items(env.get('software')) or normalize_text(env.get('network')))

    @staticmethod
    def _normalize_environment(env: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if env is None:
            return empty_environment()
        return {
            'hardware': [normalize_text(h) for h in _as_items(env.get('hardware')) if normalize_text(h)],
            'software': [normalize_text(s) for s in _as_items(env.get('software')) if normalize_text(s)],
            'network': normalize_text(env.get('network')),
        }

    # ------------------------------------------------------------------
    # Stories

    def _joined_key(self, item: Dict[str, Any], fields: List[str]) -> str:
        return '|'.join(self.key.group_key(item.get(f)) for f in fields)

    def _identity_key(self, item: Dict[str, Any]) -> str:
        raw = normalize_text(item.get('id')) or normalize_text(item.get('title'))
        return self.key.group_key(raw or _stable_repr(item))

    def _identity_sort_key(self, item: Dict[str, Any]):
        raw = normalize_text(item.get('id')) or normalize_text(item.get('title'))
        return (self._identity_key(item), raw.lower(), _stable_repr(item))

    def _merge_stories(self, stories: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """First occurrence of each story wins; duplicates donate their test cases."""
        by_key: Dict[str, Dict[str, Any]] = OrderedDict()
        for story in stories:
            key = self._identity_key(story)
            cases = [tc for tc in _as_items(story.get('testCases')) if isinstance(tc, dict)]
            if key not in by_key:
                by_key[key] = {**story, 'testCases': list(cases)}
            else:
                by_key[key]['testCases'].extend(cases)

        merged = []
        for story in by_key.values():
            unique_cases: Dict[str, Dict[str, Any]] = OrderedDict()
            for tc in story['testCases']:
                unique_cases.setdefault(self._identity_key(tc), tc)
            story['testCases'] = sorted(unique_cases.values(), key=self._identity_sort_key)
            merged.append(story)

        return sorted(merged, key=self._identity_sort_key)

    # ------------------------------------------------------------------
    # Fuzzy grouping

    def _group(
        self,
        items: List[Dict[str, Any]],
        key_of: Callable[[Dict[str, Any]], str]
    ) -> 'OrderedDict[str, List[Dict[str, Any]]]':
        """
        Group items by normalized key.

        Exact key matches join their group; otherwise the most similar
        existing key at or above the threshold is used; otherwise a new
        group starts.
        """
        groups: 'OrderedDict[str, List[Dict[str, Any]]]' = OrderedDict()
        for item in items:
            raw_key = key_of(item) or UNSPECIFIED_KEY
            if raw_key in groups:
                key = raw_key
            else:
                key = find_similar_key(groups.keys(), raw_key, self.settings.similarity_threshold) or raw_key
            groups.setdefault(key, []).append(item)
        return groups

    @staticmethod
    def _first_value(items: List[Dict[str, Any]], field_name: str) -> str:
        for item in items:
            value = normalize_text(item.get(field_name))
            if value:
                return value
        return ''

    def _group_and_merge(
        self,
        items: List[Any],
        primary_keys: List[str],
        merge_fields: List[str]
    ) -> List[Dict[str, Any]]:
        """Group on the joined primary keys and bullet-join the merge fields."""
        objects = [o for o in (_as_object(i, merge_fields[0]) for i in items) if o is not None]

        def key_of(item):
            parts = [self.key.group_key(item.get(k)) for k in primary_keys]
            return '|'.join(p for p in parts if p)

        results = []
        for key, members in self._group(objects, key_of).items():
            # Label from the first member with a primary value, in key priority order
            out: Dict[str, Any] = {}
            for pk in primary_keys:
                value = normalize_text(members[0].get(pk))
                if value:
                    out[pk] = value
                    break

            acc = _Accumulator()
            for member in members:
                for mf in merge_fields:
                    acc.add(mf, member.get(mf))
            for mf in merge_fields:
                out[mf] = join_lines(acc.get(mf))
            results.append(out)
        return results

    def _merge_risks(self, items: List[Any]) -> List[Dict[str, Any]]:
        objects = [o for o in (_as_object(i, 'description') for i in items) if o is not None]
        groups = self._group(
            objects,
            lambda r: self.key.group_key(r.get('category')) or self.key.group_key(r.get('description'))
        )

        results = []
        for key, members in groups.items():
            acc = _Accumulator()
            for member in members:
                acc.add('description', member.get('description'))
                acc.add('mitigation', member.get('mitigation'))
                acc.add('impact', member.get('impact'))
            results.append({
                'category': '' if key == UNSPECIFIED_KEY else self._first_value(members, 'category'),
                'description': join_lines(acc.get('description')),
                'mitigation': join_lines(acc.get('mitigation')),
                'impact': self._resolve_impact(acc.get('impact')),
            })
        return results

    @staticmethod
    def _resolve_impact(impacts: List[str]) -> str:
        """Highest impact wins; unknown or missing values default to Low."""
        seen = {i.lower() for i in impacts}
        for level in IMPACT_PRIORITY:
            if level.lower() in seen:
                return level
        return 'Low'

    def _merge_deliverables(self, items: List[Any]) -> List[Dict[str, Any]]:
        objects = [o for o in (_as_object(i, 'description') for i in items) if o is not None]
        groups = self._group(
            objects,
            lambda d: self.key.group_key(d.get('title')) or self.key.snippet(d.get('description'), 6)
        )

        results = []
        for key, members in groups.items():
            acc = _Accumulator()
            for member in members:
                acc.add('description', member.get('description'))
                acc.add('format', member.get('format'))
                acc.add('frequency', member.get('frequency'))
            results.append({
                'title': '' if key == UNSPECIFIED_KEY else self._first_value(members, 'title'),
                'description': join_lines(acc.get('description')),
                'format': ', '.join(sorted(acc.get('format'))),
                'frequency': ', '.join(sorted(acc.get('frequency'))),
            })
        return results

    def _merge_success_criteria(self, items: List[Any]) -> List[Dict[str, Any]]:
        objects = [o for o in (_as_object(i, 'criteria') for i in items) if o is not None]
        groups = self._group(
            objects,
            lambda s: self.key.group_key(s.get('category')) or self.key.snippet(s.get('criteria'), 6)
        )

        results = []
        for key, members in groups.items():
            acc = _Accumulator()
            for member in members:
                acc.add('criteria', member.get('criteria'))
                acc.add('threshold', member.get('threshold'))
            results.append({
                'category': '' if key == UNSPECIFIED_KEY else self._first_value(members, 'category'),
                'criteria': join_lines(acc.get('criteria')),
                'threshold': ', '.join(sorted(acc.get('threshold'))),
            })
        return results

    def _merge_roles(self, items: List[Any]) -> List[Dict[str, Any]]:
        objects = [o for o in (_as_object(i, 'responsibility') for i in items) if o is not None]
        groups = self._group(
            objects,
            lambda r: self.key.group_key(r.get('role')) or self.key.snippet(r.get('responsibility'), 4)
        )

        results = []
        for key, members in groups.items():
            acc = _Accumulator()
            for member in members:
                acc.add('responsibility', member.get('responsibility'))
            results.append({
                'role': '' if key == UNSPECIFIED_KEY else self._first_value(members, 'role'),
                'responsibility': join_lines(acc.get('responsibility')),
            })
        return results

    def _merge_staffing(self, items: List[Any]) -> List[Dict[str, Any]]:
        """Group by role; entries without a role are dropped."""
        objects = [
            o for o in (_as_object(i, 'role') for i in items)
            if o is not None and normalize_text(o.get('role'))
        ]
        groups = self._group(objects, lambda s: self.key.group_key(s.get('role')))

        results = []
        for members in groups.values():
            acc = _Accumulator()
            for member in members:
                acc.add('skills', member.get('skills'))
            results.append({
                'role': self._first_value(members, 'role'),
                'skills': sorted(acc.get('skills'), key=lambda s: (s.lower(), s)),
            })
        return results

    # ------------------------------------------------------------------
    # Exact dedup and ordering

    def _unique_by(
        self,
        items: List[Any],
        text_field: str,
        key_of: Callable[[Dict[str, Any]], str]
    ) -> List[Dict[str, Any]]:
        unique: Dict[str, Dict[str, Any]] = OrderedDict()
        for item in items:
            obj = _as_object(item, text_field)
            if obj is not None:
                unique.setdefault(key_of(obj), obj)
        return list(unique.values())

    @staticmethod
    def _unique_strings(items: List[Any]) -> List[str]:
        values = set()
        for item in items:
            if isinstance(item, (dict, list)):
                text = _stable_repr(item)
            else:
                text = normalize_text(item)
            if text:
                values.add(text)
        return sorted(values, key=lambda s: (s.lower(), s))

    def _sort_sections(self, merged: Dict[str, Any]):
        def by(field_name: str):
            return lambda item: (self.key.group_key(item.get(field_name)), _stable_repr(item))

        merged['riskAssessment'].sort(key=by('category'))
        merged['deliverables'].sort(key=by('title'))
        merged['successCriteria'].sort(key=by('category'))
        merged['rolesAndResponsibility'].sort(key=by('role'))
        merged['staffingAndTraining'].sort(key=by('role'))
        for section in DESCRIPTION_SECTIONS + ['approvalsAndSignoffs']:
            merged[section].sort(key=by('description'))
        merged['references'].sort(key=by('title'))
        merged['testItems'].sort(
            key=lambda t: (
                self.key.group_key(t.get('id')) or self.key.group_key(t.get('endpoint')),
                _stable_repr(t)
            )
        )

    @staticmethod
    def _merge_traceability(matrix: Dict[str, List[Any]]) -> Dict[str, List[str]]:
        result = OrderedDict()
        for req_id in sorted(matrix, key=lambda k: (k.lower(), k)):
            values = {normalize_text(v) for v in matrix[req_id]}
            values.discard('')
            result[req_id] = sorted(values, key=lambda s: (s.lower(), s))
        return dict(result)
