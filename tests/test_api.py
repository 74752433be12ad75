"""HTTP-level tests for the routes and the error envelope."""

from conftest import PASSWORD, auth_headers


class TestErrorEnvelope:

    def test_domain_error(self, client, student):
        response = client.get(
            "/api/classes/validate-join-code/NOPE00", headers=auth_headers(student)
        )
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Invalid or expired join code."}

    def test_role_check(self, client, student):
        response = client.post(
            "/api/classes",
            json={"name": "Chemistry", "subject": "Science"},
            headers=auth_headers(student),
        )
        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Access denied. Teachers only."}

    def test_missing_token(self, client):
        response = client.get("/api/classes")
        assert response.status_code in (401, 403)
        assert response.json()["success"] is False

    def test_validation_error(self, client, teacher):
        response = client.post("/api/classes", json={}, headers=auth_headers(teacher))
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["message"].startswith("Invalid request")

    def test_invalid_action(self, client, teacher, algebra):
        response = client.post(
            f"/api/classes/{algebra.class_id}/join-requests/some-request/maybe",
            headers=auth_headers(teacher),
        )
        assert response.status_code == 400
        assert "Invalid action 'maybe'" in response.json()["message"]


class TestAuthRoutes:

    def test_register_then_login(self, client):
        registered = client.post(
            "/api/auth/register",
            json={
                "userType": "student",
                "name": "Katherine Johnson",
                "enrollment": "enr777",
                "password": PASSWORD,
            },
        )
        assert registered.status_code == 200
        assert registered.json()["success"] is True

        login = client.post(
            "/api/auth/login",
            json={"userType": "student", "enrollment": "ENR777", "password": PASSWORD},
        )
        assert login.status_code == 200
        token = login.json()["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["user"]["name"] == "Katherine Johnson"
        assert me.json()["user"]["role"] == "student"

    def test_bad_credentials(self, client, teacher):
        response = client.post(
            "/api/auth/login",
            json={"userType": "teacher", "email": "ada@example.com", "password": "wrong-one"},
        )
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid credentials."}

    def test_forgot_password_does_not_reveal_accounts(self, client, teacher):
        known = client.post("/api/auth/forgot-password", json={"email": "ada@example.com"})
        unknown = client.post("/api/auth/forgot-password", json={"email": "who@example.com"})
        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()


class TestJoinFlow:

    def test_student_joins_class(self, client, teacher, student):
        teacher_headers = auth_headers(teacher)
        student_headers = auth_headers(student)

        created = client.post(
            "/api/classes",
            json={"name": "Physics", "subject": "Science"},
            headers=teacher_headers,
        ).json()
        class_id = created["class"]["id"]

        issued = client.post(
            f"/api/classes/{class_id}/generate-join-code",
            json={"maxUsage": 2},
            headers=teacher_headers,
        ).json()
        assert issued["maxUsage"] == 2
        assert issued["expiresInMinutes"] == 10
        code = issued["joinCode"]

        active = client.get(
            f"/api/classes/{class_id}/active-join-code", headers=teacher_headers
        ).json()
        assert active["hasActiveCode"] is True
        assert active["joinCode"] == code

        validated = client.get(
            f"/api/classes/validate-join-code/{code.lower()}", headers=student_headers
        ).json()
        assert validated["classInfo"]["className"] == "Physics"
        assert validated["classInfo"]["teacherName"] == "Ada Lovelace"

        submitted = client.post(
            "/api/classes/join-request", json={"joinCode": code}, headers=student_headers
        ).json()
        assert submitted["reactivated"] is False
        request_id = submitted["requestId"]

        again = client.post(
            "/api/classes/join-request", json={"joinCode": code}, headers=student_headers
        )
        assert again.status_code == 400
        assert again.json()["success"] is False

        pending = client.get(
            f"/api/classes/{class_id}/join-requests", headers=teacher_headers
        ).json()
        assert pending["totalPending"] == 1
        assert pending["requests"][0]["studentName"] == "Grace Hopper"

        approved = client.post(
            f"/api/classes/{class_id}/join-requests/{request_id}/approve",
            headers=teacher_headers,
        ).json()
        assert approved["action"] == "approved"
        assert approved["studentCount"] == 1

        listed = client.get("/api/classes", headers=student_headers).json()
        assert listed["userType"] == "student"
        assert [c["id"] for c in listed["classes"]] == [class_id]

        students = client.get(
            f"/api/classes/{class_id}/students", headers=teacher_headers
        ).json()
        assert students["totalStudents"] == 1


class TestQuizRoutes:

    def test_create_take_and_rank(self, client, db_session, classes, teacher, student, algebra):
        classes.activate_enrollment(
            algebra.class_id, student.user_id, student.name, student.enrollment
        )
        db_session.commit()

        created = client.post(
            "/api/quizzes",
            json={
                "classId": algebra.class_id,
                "title": "Warm-up",
                "questions": [
                    {
                        "question": "2 + 2 = ?",
                        "options": ["3", "4", "5", "22"],
                        "correctAnswer": "4",
                    }
                ],
            },
            headers=auth_headers(teacher),
        )
        assert created.status_code == 200
        quiz_id = created.json()["quiz"]["quizId"]

        seen = client.get(f"/api/quizzes/{quiz_id}", headers=auth_headers(student)).json()
        assert seen["quiz"]["questions"][0]["correctAnswer"] is None

        submitted = client.post(
            f"/api/quizzes/{quiz_id}/submit",
            json={"answers": ["4"], "timeTakenSeconds": 42},
            headers=auth_headers(student),
        ).json()
        assert submitted["result"]["score"] == 1
        assert submitted["result"]["percentage"] == 100.0

        rankings = client.get(
            f"/api/classes/{algebra.class_id}/rankings", headers=auth_headers(student)
        ).json()
        assert rankings["rankings"][0]["studentName"] == "Grace Hopper"
        assert rankings["rankings"][0]["rank"] == 1


class TestTeacherManagedRoster:

    def test_add_student_directly(self, client, teacher, student, algebra):
        response = client.post(
            f"/api/classes/{algebra.class_id}/students",
            json={"enrollment": "enr001"},
            headers=auth_headers(teacher),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["student"]["studentId"] == student.user_id
        assert body["studentCount"] == 1

        again = client.post(
            f"/api/classes/{algebra.class_id}/students",
            json={"enrollment": "ENR001"},
            headers=auth_headers(teacher),
        )
        assert again.status_code == 400
        assert again.json() == {
            "success": False,
            "message": "Student is already enrolled in this class.",
        }

    def test_delete_quiz(self, client, quizzes, teacher, algebra):
        quiz = quizzes.create_quiz(
            algebra.class_id,
            teacher.user_id,
            "Warm-up",
            [{"question": "2 + 2 = ?", "options": ["3", "4", "5", "22"], "correct_answer": "4"}],
        )

        deleted = client.delete(f"/api/quizzes/{quiz.quiz_id}", headers=auth_headers(teacher))
        assert deleted.json() == {"success": True, "message": "Quiz deleted successfully"}

        missing = client.get(f"/api/quizzes/{quiz.quiz_id}", headers=auth_headers(teacher))
        assert missing.status_code == 404
