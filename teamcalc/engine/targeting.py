# teamcalc/engine/targeting.py
from typing import Dict, List, Optional, Sequence

from models import Attribute, Card, RandomTargetMode
from teamcalc.engine.team_types import (
    MAIN_TEAM_SIZE, ParsedAbility, RankSort, ResolvedTargets, TargetType, TeamContext, TeamMemberState,
)


def matches_attribute(card: Optional[Card], attribute_filter: Optional[Attribute]) -> bool:
    if attribute_filter is None or card is None:
        return True
    return card.stats.attribute_name == attribute_filter.value


def _card_max_atk(members: Sequence[TeamMemberState], index: int) -> float:
    card = members[index].card
    return card.stats.max_atk if card else 0.0


def _resolve_limited(indices: List[int], count: int, members: Sequence[TeamMemberState],
                     mode: RandomTargetMode) -> ResolvedTargets:
    """随机 N 名目标按策略确定化，不做真随机"""
    if mode == RandomTargetMode.Average:
        # 效果按 N / 符合条件人数 平摊到全部候选
        return ResolvedTargets(indices=indices, scale_factor=count / len(indices))
    if mode == RandomTargetMode.First:
        return ResolvedTargets(indices=indices[:count])
    if mode == RandomTargetMode.Last:
        return ResolvedTargets(indices=indices[-count:])

    # 稳定排序：同攻击力保持槽位顺序
    by_atk = sorted(indices, key=lambda i: _card_max_atk(members, i), reverse=True)
    if mode == RandomTargetMode.Worst:
        return ResolvedTargets(indices=by_atk[-count:])
    return ResolvedTargets(indices=by_atk[:count])


def resolve_ability_targets(
        ability: ParsedAbility,
        source_index: int,
        context: TeamContext,
        members: Sequence[TeamMemberState],
        overrides: Optional[Dict[str, List[int]]] = None,
        random_target_mode: RandomTargetMode = RandomTargetMode.Best,
) -> ResolvedTargets:
    """
    解析能力的作用对象 (槽位下标)
    顺序：羁绊伙伴检查 -> 队长检查 -> 按目标类型分派
    """
    no_targets = ResolvedTargets()

    # 1. 需要指定伙伴在场 (主卡或辅助卡)
    if ability.synergy_partners:
        present = context.present_card_ids | context.present_assist_ids
        if not any(p in present for p in ability.synergy_partners):
            return no_targets

    # 2. 队长能力：来源卡必须在 0 号位
    if ability.requires_leader:
        source_card = members[source_index].card
        if source_card is None or source_card.id != context.leader_card_id:
            return no_targets

    # 3. 分派
    if ability.target_type == TargetType.Self:
        # 辅助卡能力归属于其挂载的槽位
        return ResolvedTargets(indices=[source_index])

    if ability.target_type == TargetType.Team:
        return ResolvedTargets(indices=[i for i in range(MAIN_TEAM_SIZE) if members[i].card is not None])

    if ability.target_type == TargetType.Attribute:
        matching = [
            i for i in range(MAIN_TEAM_SIZE)
            if members[i].card is not None and matches_attribute(members[i].card, ability.attribute_filter)
        ]
        count = ability.rank_count
        if not count or count <= 0 or count >= len(matching):
            return ResolvedTargets(indices=matching)
        return _resolve_limited(matching, count, members, RandomTargetMode(random_target_mode))

    if ability.target_type == TargetType.Ranked:
        if overrides and ability.id in overrides:
            return ResolvedTargets(indices=[
                i for i in overrides[ability.id]
                if 0 <= i < MAIN_TEAM_SIZE and members[i].card is not None
            ])

        if not ability.rank_count or ability.rank_sort_by is None:
            return no_targets

        ranking = {
            RankSort.Atk: context.by_atk,
            RankSort.Speed: context.by_speed,
            RankSort.Hp: context.by_hp,
        }[ability.rank_sort_by]
        return ResolvedTargets(indices=ranking[:ability.rank_count])

    return ResolvedTargets(indices=[source_index])
