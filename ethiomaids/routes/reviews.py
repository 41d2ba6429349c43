from flask import Blueprint, request, jsonify, current_app
from ethiomaids import db
from ethiomaids.models.review import Review, ReviewHelpfulVote, REVIEW_TYPES
from ethiomaids.models.booking import BookingRequest
from ethiomaids.models.profile import Profile
from ethiomaids.models.columns import utcnow
from ethiomaids.utils.auth import require_auth, require_role, get_current_user, is_admin
from ethiomaids.utils.helpers import normalize_keys, get_pagination_args, paginated_response, create_notification
from ethiomaids.utils.validators import validate_review, SUB_RATING_FIELDS

bp = Blueprint('reviews', __name__)

EDITABLE_FIELDS = ('rating', 'title', 'comment', 'is_anonymous') + SUB_RATING_FIELDS

STAR_BUCKETS = (
    ('five_star', 5),
    ('four_star', 4),
    ('three_star', 3),
    ('two_star', 2),
    ('one_star', 1),
)


def approved_reviews_for(user_id):
    return Review.query.filter(Review.reviewee_id == user_id, Review.status == 'approved')


def rating_average(user_id):
    average, total = db.session.query(db.func.avg(Review.rating), db.func.count(Review.id)) \
        .filter(Review.reviewee_id == user_id, Review.status == 'approved').one()
    return {
        'average': round(float(average), 2) if average is not None else 0,
        'total_reviews': total
    }


def rating_breakdown(user_id):
    rows = db.session.query(Review.rating, db.func.count(Review.id)) \
        .filter(Review.reviewee_id == user_id, Review.status == 'approved') \
        .group_by(Review.rating).all()
    counts = dict(rows)

    breakdown = {name: counts.get(stars, 0) for name, stars in STAR_BUCKETS}
    total = sum(breakdown.values())
    weighted = sum(counts.get(stars, 0) * stars for _, stars in STAR_BUCKETS)
    breakdown['total_reviews'] = total
    breakdown['average_rating'] = round(weighted / total, 2) if total else 0
    return breakdown


def recount_votes(review):
    review.helpful_count = review.votes.filter_by(is_helpful=True).count()
    review.not_helpful_count = review.votes.filter_by(is_helpful=False).count()


@bp.route('/<review_id>', methods=['GET'])
def get_review(review_id):
    """Approved reviews are public; others only for the author, the reviewee and admins"""
    review = db.get_or_404(Review, review_id)
    if review.status != 'approved':
        user = get_current_user() if request.headers.get('Authorization') else None
        allowed = user is not None and (
            user.get('role') == 'admin' or user['uid'] in (review.reviewer_id, review.reviewee_id)
        )
        if not allowed:
            return jsonify({'error': 'Review not found'}), 404
    return jsonify(review.to_dict()), 200


@bp.route('/user/<user_id>', methods=['GET'])
def get_reviews_for_user(user_id):
    """Approved reviews about a user"""
    page, per_page = get_pagination_args()
    pagination = approved_reviews_for(user_id).order_by(Review.created_at.desc(), Review.id) \
        .paginate(page=page, per_page=per_page, error_out=False)
    return jsonify(paginated_response('reviews', pagination, Review.to_dict, page, per_page)), 200


@bp.route('/user/<user_id>/average', methods=['GET'])
def get_average_rating(user_id):
    return jsonify(rating_average(user_id)), 200


@bp.route('/user/<user_id>/breakdown', methods=['GET'])
def get_rating_breakdown(user_id):
    """
    Star rating breakdown over approved reviews
    ---
    tags:
      - Reviews
    parameters:
      - name: user_id
        in: path
        required: true
        schema:
          type: string
    responses:
      200:
        description: five_star..one_star counts, total_reviews and average_rating
    """
    return jsonify(rating_breakdown(user_id)), 200


@bp.route('/reviewer/<reviewer_id>', methods=['GET'])
@require_auth
def get_reviews_by_reviewer(reviewer_id):
    """Reviews written by a user (all statuses for the author and admins)"""
    page, per_page = get_pagination_args()
    query = Review.query.filter(Review.reviewer_id == reviewer_id)
    if reviewer_id != request.current_user['uid'] and not is_admin():
        query = query.filter(Review.status == 'approved', Review.is_anonymous.is_(False))
    pagination = query.order_by(Review.created_at.desc(), Review.id) \
        .paginate(page=page, per_page=per_page, error_out=False)
    return jsonify(paginated_response('reviews', pagination, Review.to_dict, page, per_page)), 200


@bp.route('/', methods=['POST'])
@require_auth
def create_review():
    """
    Write a review (pending moderation)
    ---
    tags:
      - Reviews
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - reviewee_id
              - rating
            properties:
              reviewee_id:
                type: string
              booking_id:
                type: string
              rating:
                type: integer
                minimum: 1
                maximum: 5
              comment:
                type: string
              is_anonymous:
                type: boolean
    responses:
      201:
        description: Review created
      400:
        description: Validation failed or self-review
      404:
        description: Reviewee or booking not found
    """
    data = normalize_keys(request.get_json(silent=True))
    reviewer_id = request.current_user['uid']

    errors = validate_review(data)
    if errors:
        return jsonify({'error': 'Validation failed', 'errors': errors}), 400

    reviewee_id = data.get('reviewee_id')
    if not reviewee_id:
        return jsonify({'error': 'reviewee_id is required'}), 400
    if reviewee_id == reviewer_id:
        return jsonify({'error': 'You cannot review yourself'}), 400

    reviewee = db.session.get(Profile, reviewee_id)
    if reviewee is None:
        return jsonify({'error': 'Reviewee not found'}), 404

    review_type = data.get('review_type') or f"{request.current_user.get('role')}_to_{reviewee.user_type}"
    if review_type not in REVIEW_TYPES:
        return jsonify({'error': f'Review type must be one of: {", ".join(REVIEW_TYPES)}'}), 400

    booking_id = data.get('booking_id')
    if booking_id:
        booking = db.session.get(BookingRequest, booking_id)
        if booking is None:
            return jsonify({'error': 'Booking request not found', 'code': 'BOOKING_NOT_FOUND'}), 404
        if not (booking.involves(reviewer_id) and booking.involves(reviewee_id)):
            return jsonify({'error': 'Booking does not involve both parties'}), 400

    review = Review(
        reviewer_id=reviewer_id,
        reviewee_id=reviewee_id,
        booking_id=booking_id,
        review_type=review_type,
        status='pending'
    )
    for field in EDITABLE_FIELDS:
        if field in data:
            setattr(review, field, data[field])

    db.session.add(review)
    db.session.commit()
    return jsonify(review.to_dict()), 201


@bp.route('/<review_id>', methods=['PUT'])
@require_auth
def update_review(review_id):
    review = db.get_or_404(Review, review_id)
    if review.reviewer_id != request.current_user['uid']:
        return jsonify({'error': 'Forbidden - Not the author of this review'}), 403
    if review.status != 'pending':
        return jsonify({'error': 'Only pending reviews can be edited'}), 409

    data = normalize_keys(request.get_json(silent=True))
    errors = validate_review(data, partial=True)
    if errors:
        return jsonify({'error': 'Validation failed', 'errors': errors}), 400

    for field in EDITABLE_FIELDS:
        if field in data:
            setattr(review, field, data[field])
    db.session.commit()
    return jsonify(review.to_dict()), 200


@bp.route('/<review_id>/approve', methods=['POST'])
@require_role('admin')
def approve_review(review_id):
    review = db.get_or_404(Review, review_id)
    if review.status == 'approved':
        return jsonify({'error': 'Review is already approved'}), 409
    review.status = 'approved'
    review.rejection_reason = None
    review.moderated_at = utcnow()
    create_notification(
        review.reviewee_id, 'REVIEW_RECEIVED', 'New review',
        f'You received a {review.rating}-star review', 'review', review.id
    )
    db.session.commit()
    current_app.logger.info(f"Review {review.id} approved")
    return jsonify(review.to_dict()), 200


@bp.route('/<review_id>/reject', methods=['POST'])
@require_role('admin')
def reject_review(review_id):
    review = db.get_or_404(Review, review_id)
    data = request.get_json(silent=True) or {}
    reason = data.get('reason') or data.get('rejection_reason')
    if reason is not None and not isinstance(reason, str):
        return jsonify({'error': 'reason must be a string'}), 400
    review.status = 'rejected'
    review.rejection_reason = reason
    review.moderated_at = utcnow()
    db.session.commit()
    current_app.logger.info(f"Review {review.id} rejected")
    return jsonify(review.to_dict()), 200


@bp.route('/<review_id>/response', methods=['POST'])
@require_auth
def respond_to_review(review_id):
    """Reviewee's public reply"""
    review = db.get_or_404(Review, review_id)
    if review.reviewee_id != request.current_user['uid']:
        return jsonify({'error': 'Forbidden - Only the reviewed user can respond'}), 403

    data = request.get_json(silent=True) or {}
    response_text = data.get('response') or ''
    if not isinstance(response_text, str) or not response_text.strip():
        return jsonify({'error': 'Response text is required'}), 400

    review.response = response_text.strip()
    review.response_at = utcnow()
    db.session.commit()
    return jsonify(review.to_dict()), 200


@bp.route('/<review_id>', methods=['DELETE'])
@require_auth
def delete_review(review_id):
    review = db.get_or_404(Review, review_id)
    if review.reviewer_id != request.current_user['uid'] and not is_admin():
        return jsonify({'error': 'Forbidden - Not the author of this review'}), 403

    db.session.delete(review)
    db.session.commit()
    return jsonify({'message': 'Review deleted successfully'}), 200


@bp.route('/<review_id>/vote', methods=['POST'])
@require_auth
def vote_review(review_id):
    """Mark a review helpful or not helpful; voting again switches the vote"""
    review = db.get_or_404(Review, review_id)
    data = request.get_json(silent=True) or {}
    is_helpful = data.get('is_helpful', data.get('isHelpful'))
    if not isinstance(is_helpful, bool):
        return jsonify({'error': 'is_helpful must be true or false'}), 400

    uid = request.current_user['uid']
    vote = db.session.get(ReviewHelpfulVote, (review.id, uid))
    if vote is None:
        db.session.add(ReviewHelpfulVote(review_id=review.id, user_id=uid, is_helpful=is_helpful))
    else:
        vote.is_helpful = is_helpful
    db.session.flush()

    recount_votes(review)
    db.session.commit()
    return jsonify(review.to_dict()), 200


@bp.route('/<review_id>/vote', methods=['DELETE'])
@require_auth
def remove_vote(review_id):
    review = db.get_or_404(Review, review_id)
    vote = db.session.get(ReviewHelpfulVote, (review.id, request.current_user['uid']))
    if vote is None:
        return jsonify({'error': 'Vote not found'}), 404

    db.session.delete(vote)
    db.session.flush()
    recount_votes(review)
    db.session.commit()
    return jsonify(review.to_dict()), 200
