import io
import logging

import pandas as pd
from pydantic import ValidationError

from behavior_tracker import student_entries
from models import BehaviorCategory, BehaviorEntry, BehaviorType, SchoolClass, Student, utc_now

logger = logging.getLogger(__name__)

NO_CLASS_LABEL = "No Class"
UNKNOWN_CLASS_LABEL = "Unknown Class"

ROSTER_TEMPLATE = 'name,email,class\nJohn Doe,john@example.com,Math 101\nJane Smith,jane@example.com,Math 101\n'


def _validation_message(error):
    """First human-readable message from a pydantic ValidationError."""
    messages = [e.get('msg', '') for e in error.errors()]
    message = messages[0] if messages else str(error)
    return message.removeprefix("Value error, ")


def _clean(value):
    if value is None or pd.isna(value):
        return ""
    return str(value).strip()


class DataManager:
    """
    Holds the roster, behavior categories, logged entries and classes in
    memory and persists them through a Storage.

    Every change builds new lists, saves them, and only then replaces the
    in-memory collections, so a failed save leaves the session unchanged.
    Changes driven by user input return (success, message) instead of raising.
    """

    def __init__(self, storage, teacher_id, clock=None):
        self.storage = storage
        self.teacher_id = teacher_id
        self.clock = clock or utc_now
        self.students = []
        self.categories = []
        self.entries = []
        self.classes = []

    def load(self):
        """Loads every collection from storage into memory."""
        self.students = self.storage.load_students()
        self.categories = self.storage.load_categories()
        self.entries = self.storage.load_entries()
        self.classes = self.storage.load_classes()
        logger.info("Loaded %d students, %d behaviors, %d entries, %d classes",
                    len(self.students), len(self.categories), len(self.entries), len(self.classes))

    # --- Lookups ---

    def get_student(self, student_id):
        return next((s for s in self.students if s.id == student_id), None)

    def get_category(self, behavior_id):
        return next((c for c in self.categories if c.id == behavior_id), None)

    def get_class(self, class_id):
        return next((c for c in self.classes if c.id == class_id), None)

    def get_class_name(self, student):
        """Display name of a student's class, tolerating deleted classes."""
        if not student.class_id:
            return NO_CLASS_LABEL
        school_class = self.get_class(student.class_id)
        return school_class.name if school_class else UNKNOWN_CLASS_LABEL

    def entries_for_student(self, student_id):
        return student_entries(self.entries, student_id)

    def positive_categories(self):
        return [c for c in self.categories if c.type == BehaviorType.POSITIVE]

    def negative_categories(self):
        return [c for c in self.categories if c.type == BehaviorType.NEGATIVE]

    # --- Students ---

    def add_student(self, name, email=None, class_id=None):
        """Adds one student to the roster."""
        return self.add_students([{'name': name, 'email': email, 'class_id': class_id}])

    def add_students(self, rows):
        """Adds several students at once from dicts with name/email/class_id."""
        try:
            new_students = [Student(name=row.get('name') or "",
                                    email=row.get('email'),
                                    class_id=row.get('class_id'),
                                    created_at=self.clock())
                            for row in rows]
        except ValidationError as e:
            logger.warning("Rejected student data: %s", e)
            return False, _validation_message(e)

        if not new_students:
            return False, "No valid student data found."

        updated_students = self.students + new_students
        self.storage.save_collections(students=updated_students)
        self.students = updated_students
        logger.info("Added %d students", len(new_students))
        if len(new_students) == 1:
            return True, f"Added {new_students[0].name}."
        return True, f"Added {len(new_students)} students."

    def delete_student(self, student_id):
        """Removes a student and every behavior entry logged for them."""
        student = self.get_student(student_id)
        if student is None:
            return False, "Student not found."

        updated_students = [s for s in self.students if s.id != student_id]
        updated_entries = [e for e in self.entries if e.student_id != student_id]
        removed = len(self.entries) - len(updated_entries)

        self.storage.save_collections(students=updated_students, entries=updated_entries)
        self.students = updated_students
        self.entries = updated_entries
        logger.info("Deleted student %s and %d entries", student_id, removed)
        return True, f"Deleted {student.name} and {removed} behavior entries."

    # --- Behavior categories ---

    @staticmethod
    def _parse_points(points):
        try:
            value = int(str(points).strip())
        except (TypeError, ValueError):
            return None
        return value if value != 0 else None

    @staticmethod
    def _signed_points(behavior_type, points):
        behavior_type = BehaviorType(behavior_type)
        return abs(points) if behavior_type == BehaviorType.POSITIVE else -abs(points)

    def add_behavior(self, name, behavior_type, points):
        """Creates a custom behavior category. The sign of points follows the type."""
        if not name or not name.strip():
            return False, "Please enter a behavior name."
        parsed = self._parse_points(points)
        if parsed is None:
            return False, "Please enter a valid, non-zero point value."

        try:
            category = BehaviorCategory(name=name,
                                        type=behavior_type,
                                        points=self._signed_points(behavior_type, parsed),
                                        is_custom=True,
                                        created_at=self.clock())
        except (ValidationError, ValueError) as e:
            logger.warning("Rejected behavior %r: %s", name, e)
            if isinstance(e, ValidationError):
                return False, _validation_message(e)
            return False, str(e)

        updated_categories = self.categories + [category]
        self.storage.save_collections(categories=updated_categories)
        self.categories = updated_categories
        logger.info("Added behavior %s (%s, %d)", category.name, category.type.value, category.points)
        return True, "Behavior added successfully."

    def update_behavior(self, behavior_id, name=None, behavior_type=None, points=None):
        """Edits a custom behavior category; default categories cannot be edited."""
        category = self.get_category(behavior_id)
        if category is None:
            return False, "Behavior not found."
        if not category.is_custom:
            return False, "Default behaviors cannot be edited."

        updates = category.model_dump()
        if name is not None:
            updates['name'] = name
        if behavior_type is not None:
            updates['type'] = behavior_type
        if points is not None:
            parsed = self._parse_points(points)
            if parsed is None:
                return False, "Please enter a valid, non-zero point value."
            updates['points'] = parsed
        if behavior_type is not None or points is not None:
            try:
                updates['points'] = self._signed_points(updates['type'], updates['points'])
            except ValueError as e:
                return False, str(e)

        try:
            updated = BehaviorCategory.model_validate(updates)
        except ValidationError as e:
            logger.warning("Rejected update to behavior %s: %s", behavior_id, e)
            return False, _validation_message(e)

        updated_categories = [updated if c.id == behavior_id else c for c in self.categories]
        self.storage.save_collections(categories=updated_categories)
        self.categories = updated_categories
        logger.info("Updated behavior %s", behavior_id)
        return True, "Behavior updated successfully."

    def delete_behavior(self, behavior_id):
        """Removes a custom behavior category and every entry that used it."""
        category = self.get_category(behavior_id)
        if category is None:
            return False, "Behavior not found."
        if not category.is_custom:
            return False, "Default behaviors cannot be deleted."

        updated_categories = [c for c in self.categories if c.id != behavior_id]
        updated_entries = [e for e in self.entries if e.behavior_id != behavior_id]
        removed = len(self.entries) - len(updated_entries)

        self.storage.save_collections(categories=updated_categories, entries=updated_entries)
        self.categories = updated_categories
        self.entries = updated_entries
        logger.info("Deleted behavior %s and %d entries", behavior_id, removed)
        return True, f"Deleted {category.name} and {removed} behavior entries."

    # --- Behavior entries ---

    def log_behavior(self, student_id, behavior_id, notes=None):
        """Records a behavior for a student at the current time."""
        if self.get_student(student_id) is None:
            return False, "Student not found."
        category = self.get_category(behavior_id)
        if category is None:
            return False, "Behavior not found."

        entry = BehaviorEntry(student_id=student_id,
                              behavior_id=behavior_id,
                              timestamp=self.clock(),
                              notes=notes,
                              teacher_id=self.teacher_id)

        updated_entries = self.entries + [entry]
        self.storage.save_collections(entries=updated_entries)
        self.entries = updated_entries
        logger.info("Logged %s for student %s", category.name, student_id)
        return True, f"Logged {category.name} ({category.points:+d})."

    # --- Classes ---

    def add_class(self, name, student_ids):
        """Creates a class holding a snapshot of the selected students."""
        if not name or not name.strip():
            return False, "Please enter a class name."
        selected = [s for s in self.students if s.id in set(student_ids)]
        if not selected:
            return False, "Please select at least one student."

        try:
            school_class = SchoolClass(name=name,
                                       students=[s.model_copy(deep=True) for s in selected],
                                       created_at=self.clock())
        except ValidationError as e:
            return False, _validation_message(e)

        updated_classes = self.classes + [school_class]
        self.storage.save_collections(classes=updated_classes)
        self.classes = updated_classes
        logger.info("Added class %s with %d students", school_class.name, len(selected))
        return True, f"Class {school_class.name} created with {len(selected)} students."

    def delete_class(self, class_id):
        """Removes a class. Its students and their entries are kept."""
        school_class = self.get_class(class_id)
        if school_class is None:
            return False, "Class not found."

        updated_classes = [c for c in self.classes if c.id != class_id]
        self.storage.save_collections(classes=updated_classes)
        self.classes = updated_classes
        logger.info("Deleted class %s", class_id)
        return True, f"Deleted class {school_class.name}."

    # --- Roster files ---

    def parse_roster(self, uploaded_file):
        """
        Reads student rows from an uploaded CSV or Excel roster.

        Columns are matched by case-insensitive substring: one containing
        "name" is required, "email" and "class" are optional. Class names are
        matched against existing classes; unknown names are left unassigned.
        Raises ValueError when the file has no name column.
        """
        uploaded_file.seek(0)
        file_name = getattr(uploaded_file, 'name', '') or ''
        if file_name.endswith('.xlsx'):
            df = pd.read_excel(uploaded_file, dtype=str)
        else:
            df = pd.read_csv(uploaded_file, dtype=str, skipinitialspace=True)

        headers = [str(column).strip().lower() for column in df.columns]

        def find_column(fragment):
            return next((df.columns[i] for i, h in enumerate(headers) if fragment in h), None)

        name_column = find_column('name')
        email_column = find_column('email')
        class_column = find_column('class')
        if name_column is None:
            raise ValueError('Roster must contain a "name" column')

        classes_by_name = {c.name.lower(): c.id for c in self.classes}
        rows = []
        for _, record in df.iterrows():
            name = _clean(record[name_column])
            if not name:
                continue
            email = _clean(record[email_column]) if email_column is not None else ""
            class_name = _clean(record[class_column]) if class_column is not None else ""
            rows.append({
                'name': name,
                'email': email or None,
                'class_id': classes_by_name.get(class_name.lower()) if class_name else None,
            })
        return rows

    def import_roster(self, uploaded_file):
        """Parses a roster file and adds its students."""
        try:
            rows = self.parse_roster(uploaded_file)
        except Exception as e:
            logger.warning("Roster import failed: %s", e)
            return False, f"Failed to read roster: {e}"
        if not rows:
            return False, "No valid student data found in the roster."
        return self.add_students(rows)

    @staticmethod
    def roster_template():
        return ROSTER_TEMPLATE

    def get_entries_frame(self):
        """All entries as a DataFrame joined with student and behavior names."""
        students = {s.id: s for s in self.students}
        categories = {c.id: c for c in self.categories}
        rows = []
        for entry in self.entries:
            student = students.get(entry.student_id)
            category = categories.get(entry.behavior_id)
            rows.append({
                'timestamp': entry.timestamp.isoformat(),
                'student': student.name if student else None,
                'class': self.get_class_name(student) if student else None,
                'behavior': category.name if category else None,
                'type': category.type.value if category else None,
                'points': category.points if category else 0,
                'notes': entry.notes,
                'teacher_id': entry.teacher_id,
            })
        return pd.DataFrame(rows, columns=['timestamp', 'student', 'class', 'behavior',
                                           'type', 'points', 'notes', 'teacher_id'])

    def get_data_for_download(self):
        """Prepares the entry log for download as CSV bytes."""
        if not self.entries:
            return None
        buffer = io.StringIO()
        self.get_entries_frame().to_csv(buffer, index=False)
        return buffer.getvalue().encode('utf-8')
