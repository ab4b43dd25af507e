"""
Task API for Tilly

Every route runs the gate first (CSRF marker, session, allow-list) and then
works on the caller's own tasks only.
"""

import logging

from flask import Blueprint, g, jsonify, request

from tilly.database.db import DatabaseError
from tilly.database.tasks import TaskNotFound
from tilly.models import TaskValidationError
from tilly.services.auth import gate_required

logger = logging.getLogger(__name__)

tasks_bp = Blueprint('tasks', __name__)

NOT_FOUND = 'Task not found'


def _read_json():
    """Parsed JSON body, or None when the body is not valid JSON"""
    return request.get_json(force=True, silent=True)


def _validation_error(e: TaskValidationError):
    return jsonify({'error': e.message, 'details': e.details}), 400


def _invalid_body():
    return jsonify({'error': 'The request body is not valid JSON'}), 400


@tasks_bp.route('', methods=['GET'])
@gate_required
def list_tasks():
    """Caller's tasks, newest first"""
    try:
        tasks = g.auth.tasks.list_tasks()
    except DatabaseError:
        logger.exception("Failed to list tasks")
        return jsonify({'error': 'Failed to load tasks'}), 500
    return jsonify([task.to_dict() for task in tasks])


@tasks_bp.route('', methods=['POST'])
@gate_required
def create_task():
    """Create a task for the caller"""
    data = _read_json()
    if data is None:
        return _invalid_body()

    try:
        task = g.auth.tasks.create_task(data)
    except TaskValidationError as e:
        return _validation_error(e)
    except DatabaseError:
        logger.exception("Failed to create task")
        return jsonify({'error': 'Failed to create task'}), 500

    logger.info(f"Task {task.id} created by {g.auth.email}")
    return jsonify(task.to_dict()), 201


@tasks_bp.route('/<task_id>', methods=['GET'])
@gate_required
def get_task(task_id):
    try:
        task = g.auth.tasks.get_task(task_id)
    except TaskNotFound:
        return jsonify({'error': NOT_FOUND}), 404
    except DatabaseError:
        logger.exception(f"Failed to load task {task_id}")
        return jsonify({'error': 'Failed to load task'}), 500
    return jsonify(task.to_dict())


@tasks_bp.route('/<task_id>', methods=['PUT'])
@gate_required
def update_task(task_id):
    """Partial update: only the supplied fields change"""
    data = _read_json()
    if data is None:
        return _invalid_body()

    try:
        task = g.auth.tasks.update_task(task_id, data)
    except TaskValidationError as e:
        return _validation_error(e)
    except TaskNotFound:
        return jsonify({'error': NOT_FOUND}), 404
    except DatabaseError:
        logger.exception(f"Failed to update task {task_id}")
        return jsonify({'error': 'Failed to update task'}), 500
    return jsonify(task.to_dict())


@tasks_bp.route('/<task_id>', methods=['DELETE'])
@gate_required
def delete_task(task_id):
    try:
        g.auth.tasks.delete_task(task_id)
    except TaskNotFound:
        return jsonify({'error': NOT_FOUND}), 404
    except DatabaseError:
        logger.exception(f"Failed to delete task {task_id}")
        return jsonify({'error': 'Failed to delete task'}), 500
    return '', 204
