"""
Likes, matches, blocks, rejections, reports and the discovery feed
"""
from datetime import datetime, timedelta

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError

from models import Like, Match, Report, ReportReason, ReportStatus, User
from models.report import OPEN_REPORT_STATUSES
from models.user import opposite_gender, user_blocks
from services.base_service import BaseService
from utils.cache_manager import FEED_CACHE_TTL, feed_cache_key
from utils.errors import Forbidden, NotFound, ValidationError
from utils.helpers import ordered_pair, user_room
from utils.logging_config import log_audit, log_user_action
from utils.security import sanitize_input

FEED_LIMIT = 50
MAX_COMMENT_LENGTH = 500
MAX_REPORT_DESCRIPTION = 1000


class InteractionService(BaseService):
    def __init__(self, db, cache, notifications, push, logger):
        super().__init__(db, logger)
        self.cache = cache
        self.notifications = notifications
        self.push = push

    # --- helpers -------------------------------------------------------

    def _clear_feeds(self, *user_ids):
        self.cache.delete(*[feed_cache_key(user_id) for user_id in user_ids])

    def _ensure_distinct(self, user_id, other_id, action):
        if user_id == other_id:
            raise ValidationError(f'Cannot {action} yourself')

    def _ensure_not_blocked(self, user, other, message):
        if user.is_blocking(other) or other.is_blocking(user):
            raise Forbidden(message, code='BLOCKED')

    def _delete_likes_between(self, user_a_id, user_b_id):
        return Like.query.filter(or_(
            and_(Like.from_user_id == user_a_id, Like.to_user_id == user_b_id),
            and_(Like.from_user_id == user_b_id, Like.to_user_id == user_a_id)
        )).delete(synchronize_session=False)

    # --- likes ---------------------------------------------------------

    def like_profile(self, from_user_id, to_user_id, image, comment=None):
        """Record a like; liking the same profile again refreshes the entry"""
        self._ensure_distinct(from_user_id, to_user_id, 'like')
        if image is not None and not isinstance(image, str):
            raise ValidationError('image must be a string', details={'field': 'image'})
        if comment is not None:
            if not isinstance(comment, str):
                raise ValidationError('comment must be a string', details={'field': 'comment'})
            comment = sanitize_input(comment) or None
            if comment and len(comment) > MAX_COMMENT_LENGTH:
                raise ValidationError(f'comment cannot exceed {MAX_COMMENT_LENGTH} characters',
                                      details={'field': 'comment'})

        user, liked_user = self.require_users(from_user_id, to_user_id)
        if Match.for_pair(from_user_id, to_user_id):
            raise ValidationError('You are already matched with this user', code='ALREADY_MATCHED')
        self._ensure_not_blocked(user, liked_user, 'Cannot like this user')

        like = Like.query.filter_by(from_user_id=from_user_id, to_user_id=to_user_id).first()
        if like:
            like.image = image
            like.comment = comment
            like.created_at = datetime.utcnow()
        else:
            like = Like(from_user_id=from_user_id, to_user_id=to_user_id,
                        image=image, comment=comment)
            self.db.session.add(like)
        user.touch()

        try:
            self.db.session.commit()
        except IntegrityError:
            # Concurrent duplicate like for the same pair; the existing row wins
            self.db.session.rollback()
            self.logger.info(f"Duplicate like {from_user_id} -> {to_user_id} ignored")
            return {'message': 'Profile liked successfully'}

        self._clear_feeds(from_user_id, to_user_id)
        log_user_action(self.logger, from_user_id, 'like_profile', {'likedUserId': to_user_id})

        self.notifications.create_notification(
            to_user_id,
            'like',
            'New Like!',
            f"{user.first_name} liked your profile{' and left a comment' if comment else ''}",
            {'fromUserId': from_user_id, 'fromUserName': user.first_name,
             'comment': comment, 'image': image}
        )

        return {'message': 'Profile liked successfully'}

    def get_received_likes(self, user_id):
        user = self.require_user(user_id)
        hidden_ids = set(user.blocked_user_ids()) | set(user.rejected_profile_ids())

        likes = (Like.query
                 .filter(Like.to_user_id == user_id)
                 .order_by(Like.created_at.desc(), Like.id.desc())
                 .all())

        received = []
        for like in likes:
            liker = like.from_user
            if like.from_user_id in hidden_ids or liker.is_deleted or not liker.is_active:
                continue
            entry = like.to_dict()
            entry['user'] = liker.to_summary_dict()
            received.append(entry)
        return {'receivedLikes': received}

    # --- matches -------------------------------------------------------

    def create_match(self, current_user_id, selected_user_id):
        """Match two users; repeated calls leave exactly one match for the pair"""
        self._ensure_distinct(current_user_id, selected_user_id, 'match with')
        current_user, selected_user = self.require_users(current_user_id, selected_user_id)
        self._ensure_not_blocked(current_user, selected_user, 'Cannot create match with this user')

        match = Match.for_pair(current_user_id, selected_user_id)
        if match:
            return {'message': 'Match already exists', 'matchId': match.id}

        # Pair row and consumed likes are written in one transaction
        low, high = ordered_pair(current_user_id, selected_user_id)
        match = Match(user_low_id=low, user_high_id=high)
        self.db.session.add(match)
        self._delete_likes_between(current_user_id, selected_user_id)
        current_user.touch()

        try:
            self.db.session.commit()
        except IntegrityError:
            self.db.session.rollback()
            match = Match.for_pair(current_user_id, selected_user_id)
            if not match:
                raise
            return {'message': 'Match already exists', 'matchId': match.id}

        self._clear_feeds(current_user_id, selected_user_id)
        log_user_action(self.logger, current_user_id, 'create_match', {'matchedUserId': selected_user_id})

        for user, other in ((current_user, selected_user), (selected_user, current_user)):
            self.notifications.create_notification(
                user.id,
                'match',
                "It's a Match!",
                f"You and {other.first_name} liked each other!",
                {'matchedUserId': other.id, 'matchedUserName': other.first_name}
            )
            if self.push:
                self.push.emit_to_room(user_room(user.id), 'new_match', {
                    'type': 'new_match',
                    'data': {'matchId': match.id, 'user': other.to_summary_dict()},
                    'timestamp': datetime.utcnow().isoformat()
                })

        return {'message': 'Match created successfully', 'matchId': match.id}

    def get_matches(self, user_id):
        user = self.require_user(user_id)
        blocked = set(user.blocked_user_ids())

        matches = []
        for match in Match.involving(user_id).order_by(Match.created_at.desc()).all():
            other_id = match.other_user_id(user_id)
            if other_id in blocked:
                continue
            other = self.db.session.get(User, other_id)
            if not other or other.is_deleted:
                continue
            card = other.to_summary_dict()
            card['matchId'] = match.id
            card['matchedAt'] = match.to_dict()['createdAt']
            matches.append(card)
        return {'matches': matches}

    # --- discovery -----------------------------------------------------

    def discover(self, user_id):
        """Candidate profiles for the swipe feed, cached per user"""
        cache_key = feed_cache_key(user_id)
        candidate_ids = self.cache.get(cache_key)
        if candidate_ids is None:
            candidate_ids = self._feed_candidate_ids(user_id)
            self.cache.set(cache_key, candidate_ids, ttl=FEED_CACHE_TTL)
            self.logger.info(f"Discovery feed for user {user_id}: {len(candidate_ids)} candidates")
        else:
            self.logger.debug(f"Returning cached feed for user {user_id}")
        return {'matches': self._render_feed(candidate_ids)}

    def _render_feed(self, candidate_ids):
        """Load the cached ids fresh; accounts hidden since caching drop out"""
        if not candidate_ids:
            return []
        candidates = User.query.filter(
            User.id.in_(candidate_ids),
            User.visibility != 'hidden',
            User.is_active.is_(True),
            User.is_deleted.is_(False)
        ).all()
        by_id = {candidate.id: candidate for candidate in candidates}
        return [by_id[cid].to_dict() for cid in candidate_ids if cid in by_id]

    def _feed_candidate_ids(self, user_id):
        user = self.require_user(user_id)

        liked_me = [row.from_user_id for row in
                    self.db.session.query(Like.from_user_id).filter(Like.to_user_id == user_id)]
        i_liked = [row.to_user_id for row in
                   self.db.session.query(Like.to_user_id).filter(Like.from_user_id == user_id)]
        exclude_ids = set([user_id])
        exclude_ids.update(Match.matched_user_ids(user_id))
        exclude_ids.update(i_liked)
        exclude_ids.update(liked_me)
        exclude_ids.update(user.blocked_user_ids())
        exclude_ids.update(user.rejected_profile_ids())
        exclude_ids.update(user.blocker_ids())

        query = User.query.filter(
            ~User.id.in_(list(exclude_ids)),
            User.visibility != 'hidden',
            User.is_active.is_(True),
            User.is_deleted.is_(False),
            User.role == 'user'
        )

        preferences = user.dating_preferences or []
        if 'Everyone' in preferences:
            query = query.filter(User.gender.in_(['Male', 'Female', 'Non-binary']))
        elif 'Male' in preferences and 'Female' in preferences:
            query = query.filter(User.gender.in_(['Male', 'Female']))
        elif 'Male' in preferences:
            query = query.filter(User.gender == 'Male')
        elif 'Female' in preferences:
            query = query.filter(User.gender == 'Female')
        else:
            fallback = opposite_gender(user.gender)
            if fallback:
                query = query.filter(User.gender == fallback)

        if user.type:
            query = query.filter(User.type == user.type)

        rows = query.with_entities(User.id).order_by(User.last_active.desc(), User.id).limit(FEED_LIMIT)
        return [row.id for row in rows]

    # --- blocking ------------------------------------------------------

    def block_user(self, user_id, blocked_user_id):
        """Block a user and drop every match and like between the two"""
        self._ensure_distinct(user_id, blocked_user_id, 'block')
        user, blocked_user = self.require_users(user_id, blocked_user_id)

        if user.is_blocking(blocked_user):
            raise ValidationError('User is already blocked')

        user.block_user(blocked_user)
        low, high = ordered_pair(user_id, blocked_user_id)
        Match.query.filter_by(user_low_id=low, user_high_id=high).delete(synchronize_session=False)
        self._delete_likes_between(user_id, blocked_user_id)
        self.db.session.commit()

        self._clear_feeds(user_id, blocked_user_id)
        log_audit(self.logger, user_id, 'block_user', {'blockedUserId': blocked_user_id})
        return {'message': 'User blocked successfully'}

    def unblock_user(self, user_id, blocked_user_id):
        user = self.require_user(user_id)
        blocked_user = self.db.session.get(User, blocked_user_id)

        if not blocked_user or not user.is_blocking(blocked_user):
            raise ValidationError('User is not blocked')

        user.unblock_user(blocked_user)
        self.db.session.commit()

        self._clear_feeds(user_id, blocked_user_id)
        log_audit(self.logger, user_id, 'unblock_user', {'unblockedUserId': blocked_user_id})
        return {'message': 'User unblocked successfully'}

    def get_blocked_users(self, user_id):
        user = self.require_user(user_id)
        blocked = (user.blocked_users
                   .order_by(user_blocks.c.created_at.desc())
                   .all())
        return {'blockedUsers': [u.to_summary_dict() for u in blocked]}

    def check_blocked(self, user_id, other_user_id):
        user = self.require_user(user_id)
        other = self.db.session.get(User, other_user_id)
        if not other:
            raise NotFound('User not found')
        blocked_by_me = user.is_blocking(other)
        return {
            'isBlocked': blocked_by_me or other.is_blocking(user),
            'blockedByMe': blocked_by_me
        }

    # --- rejections ----------------------------------------------------

    def reject_profile(self, user_id, rejected_user_id):
        """Hide a profile from discovery for good; their pending like is consumed"""
        self._ensure_distinct(user_id, rejected_user_id, 'reject')
        user, rejected_user = self.require_users(user_id, rejected_user_id)

        user.reject_profile(rejected_user)
        Like.query.filter_by(from_user_id=rejected_user_id, to_user_id=user_id) \
            .delete(synchronize_session=False)
        self.db.session.commit()

        self._clear_feeds(user_id)
        log_user_action(self.logger, user_id, 'reject_profile', {'rejectedUserId': rejected_user_id})
        return {'message': 'Profile rejected successfully'}

    def unreject_profile(self, user_id, rejected_user_id):
        user = self.require_user(user_id)
        rejected_user = self.db.session.get(User, rejected_user_id)

        if rejected_user:
            user.unreject_profile(rejected_user)
            self.db.session.commit()

        self._clear_feeds(user_id)
        return {'message': 'Profile unrejected successfully'}

    def get_rejected_profiles(self, user_id):
        user = self.require_user(user_id)
        return {'rejectedProfiles': [u.to_summary_dict() for u in user.rejected_profiles.all()]}

    # --- reports -------------------------------------------------------

    def report_user(self, reporter_id, reported_user_id, reason, description=None):
        self._ensure_distinct(reporter_id, reported_user_id, 'report')

        try:
            reason_value = ReportReason(reason)
        except ValueError:
            raise ValidationError('Invalid report reason', details={
                'field': 'reason', 'allowed': [r.value for r in ReportReason]
            })

        if description is not None and not isinstance(description, str):
            raise ValidationError('description must be a string', details={'field': 'description'})
        description = sanitize_input(description or '')
        if len(description) > MAX_REPORT_DESCRIPTION:
            raise ValidationError(f'description cannot exceed {MAX_REPORT_DESCRIPTION} characters',
                                  details={'field': 'description'})

        self.require_users(reporter_id, reported_user_id)

        existing = Report.query.filter(
            Report.reporter_id == reporter_id,
            Report.reported_user_id == reported_user_id,
            Report.status.in_(OPEN_REPORT_STATUSES)
        ).first()
        if existing:
            raise ValidationError('You have already reported this user', code='DUPLICATE_REPORT')

        report = Report(
            reporter_id=reporter_id,
            reported_user_id=reported_user_id,
            reason=reason_value,
            description=description,
            status=ReportStatus.PENDING
        )
        self.db.session.add(report)
        self.db.session.commit()

        log_audit(self.logger, reporter_id, 'report_user', {
            'reportedUserId': reported_user_id, 'reason': reason_value.value, 'reportId': report.id
        })
        return {'message': 'User reported successfully', 'reportId': report.id}

    def list_reports(self, status=None, page=1, limit=20):
        query = Report.query
        if status:
            try:
                query = query.filter(Report.status == ReportStatus(status))
            except ValueError:
                raise ValidationError('Invalid report status', details={'field': 'status'})

        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        total = query.count()
        reports = (query.order_by(Report.created_at.desc(), Report.id.desc())
                   .offset((page - 1) * limit)
                   .limit(limit)
                   .all())
        return {
            'reports': [r.to_dict() for r in reports],
            'pagination': {'page': page, 'limit': limit, 'total': total}
        }

    def report_stats(self):
        """Counts per status and reason for the moderation dashboard"""
        by_status = dict(self.db.session.query(Report.status, func.count(Report.id))
                         .group_by(Report.status).all())
        by_reason = (self.db.session.query(Report.reason, func.count(Report.id))
                     .group_by(Report.reason).all())
        week_ago = datetime.utcnow() - timedelta(days=7)

        return {
            'totalReports': sum(by_status.values()),
            'pendingReports': by_status.get(ReportStatus.PENDING, 0),
            'reviewedReports': by_status.get(ReportStatus.REVIEWED, 0),
            'resolvedReports': by_status.get(ReportStatus.RESOLVED, 0),
            'dismissedReports': by_status.get(ReportStatus.DISMISSED, 0),
            'reportsByReason': [{'reason': reason.value, 'count': count}
                                for reason, count in sorted(by_reason, key=lambda row: row[0].value)],
            'recentReports': Report.query.filter(Report.created_at >= week_ago).count()
        }

    def review_report(self, admin, report_id, data):
        report = self.db.session.get(Report, report_id)
        if not report:
            raise NotFound('Report not found')

        try:
            report.status = ReportStatus(data.get('status'))
        except ValueError:
            raise ValidationError('Invalid report status', details={'field': 'status'})

        if 'adminNotes' in data:
            notes = data.get('adminNotes')
            if notes is not None and not isinstance(notes, str):
                raise ValidationError('adminNotes must be a string', details={'field': 'adminNotes'})
            report.admin_notes = sanitize_input(notes or '')[:MAX_REPORT_DESCRIPTION]

        report.reviewed_by = admin.id
        report.reviewed_at = datetime.utcnow()
        self.db.session.commit()

        log_audit(self.logger, admin.id, 'review_report', {
            'reportId': report.id, 'status': report.status.value
        })
        return {'message': 'Report updated successfully', 'report': report.to_dict()}
